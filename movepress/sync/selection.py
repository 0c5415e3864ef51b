"""Restricting a file sync to selected paths."""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..utils import normalize_relative_path


@dataclass(frozen=True)
class SelectionRules:
    """Which paths a file sync is limited to."""

    restrict: bool = False
    """True if only the include patterns are transferred"""

    includes: tuple[str, ...] = field(default_factory=tuple)
    """Root-anchored include patterns (directories end with "/")"""


def build_selection_rules(
    paths: Optional[Iterable[str]], select_all: bool = False
) -> SelectionRules:
    """Turn user-selected paths into selection rules.

    Args:
        paths: Relative paths chosen by the user; a trailing slash marks a
            directory; each path is anchored to the sync root
        select_all: Transfer everything regardless of paths

    Returns:
        SelectionRules; unrestricted when nothing usable was selected

    Examples:
        >>> build_selection_rules(["wp-content/uploads/", "./robots.txt"]).includes
        ('/wp-content/uploads/', '/robots.txt')
    """
    if select_all or not paths:
        return SelectionRules()

    includes: list[str] = []
    for raw in paths:
        text = raw.strip()
        while text.startswith("./"):
            text = text[2:]
        is_dir = text.endswith("/")
        normalized = normalize_relative_path(text)
        if not normalized or normalized == ".":
            # The root itself was selected
            return SelectionRules()
        includes.append(f"/{normalized}/" if is_dir else f"/{normalized}")

    return SelectionRules(restrict=True, includes=tuple(dict.fromkeys(includes)))
