"""Exclude/include pattern matching for file syncs.

Patterns follow rsync's conventions so that the preview shown to the user
and the transfer that follows select the same files:

- ``wp-config.php`` - exact path (or, without a slash, the name at any depth)
- ``wp-content/cache/`` or ``wp-content/cache/***`` - a directory and
  everything below it
- ``*.log``, ``wp-content/**/cache`` - globs; ``*`` and ``?`` stay within a
  path segment, ``**`` crosses segments

A pattern without a slash (other than a trailing one) is unanchored and is
tested against each path component. A leading or interior slash anchors it
to the sync root. A trailing slash limits any pattern to directories.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..utils import glob_match, is_glob_pattern, normalize_relative_path


class PatternKind(str, Enum):
    """How a pattern is matched against a relative path."""

    EXACT = "exact"
    PREFIX = "prefix"
    GLOB = "glob"


@dataclass(frozen=True)
class Pattern:
    """A parsed exclude/include pattern."""

    raw: str
    """Pattern as written in the configuration"""

    kind: PatternKind
    """Matching strategy"""

    body: str
    """Pattern without anchoring slash and directory suffix"""

    anchored: bool
    """True if matched against the whole relative path"""

    directory: bool = False
    """True if the pattern only matches directories (written with a trailing slash)"""

    @classmethod
    def parse(cls, raw: str) -> "Pattern":
        """Classify a pattern string.

        Args:
            raw: Pattern as written by the user

        Returns:
            Parsed pattern

        Raises:
            ValueError: If the pattern is empty

        Examples:
            >>> Pattern.parse("wp-content/cache/").kind
            <PatternKind.PREFIX: 'prefix'>
            >>> Pattern.parse("*.log").anchored
            False
            >>> Pattern.parse("cache*/").directory
            True
        """
        text = raw.strip()
        anchored = text.startswith("/")
        text = text.lstrip("/")

        if text.endswith("/***"):
            text = text[:-4]
            directory = True
        elif text.endswith("/"):
            text = text.rstrip("/")
            directory = True
        else:
            directory = False

        if not text:
            raise ValueError(f"Empty pattern: {raw!r}")

        if is_glob_pattern(text):
            kind = PatternKind.GLOB
        elif directory:
            kind = PatternKind.PREFIX
        else:
            kind = PatternKind.EXACT

        return cls(
            raw=raw,
            kind=kind,
            body=text,
            anchored=anchored or "/" in text,
            directory=directory,
        )

    def matches(self, relative_path: str, is_dir: Optional[bool] = None) -> bool:
        """Check whether a relative path matches this pattern.

        Args:
            relative_path: Path relative to the sync root
            is_dir: Whether the path is a directory; None if unknown, in
                which case directory-only patterns may match it
        """
        path = normalize_relative_path(relative_path)
        if not path:
            return False

        if self.directory and is_dir is False:
            # A file only falls under a directory pattern through its parent
            parent = path.rpartition("/")[0]
            if self.kind != PatternKind.PREFIX or not parent:
                return False
            return self.matches(parent, is_dir=True)

        if self.anchored:
            if self.kind == PatternKind.GLOB:
                return glob_match(self.body, path)
            if self.kind == PatternKind.PREFIX:
                return path == self.body or path.startswith(self.body + "/")
            return path == self.body

        if self.kind == PatternKind.PREFIX:
            return self.body in path.split("/")
        name = path.rsplit("/", 1)[-1]
        if self.kind == PatternKind.GLOB:
            return glob_match(self.body, name)
        return name == self.body

    def may_match_below(self, directory: str) -> bool:
        """Check whether a path strictly below ``directory`` could match."""
        if not self.anchored:
            return True
        pattern_parts = self.body.split("/")
        dir_parts = normalize_relative_path(directory).split("/")
        for i, part in enumerate(dir_parts):
            if i >= len(pattern_parts) - 1:
                return False
            pattern_part = pattern_parts[i]
            if "**" in pattern_part:
                return True
            if self.kind == PatternKind.GLOB:
                if not glob_match(pattern_part, part):
                    return False
            elif pattern_part != part:
                return False
        return True

    def to_rsync(self) -> str:
        """Return the equivalent rsync filter pattern."""
        rule = f"/{self.body}" if self.anchored else self.body
        return f"{rule}/" if self.directory else rule


def matches(relative_path: str, pattern: str, is_dir: Optional[bool] = None) -> bool:
    """Check whether a relative path matches a pattern string."""
    return Pattern.parse(pattern).matches(relative_path, is_dir)


def _ancestors(path: str) -> Iterator[str]:
    parts = path.split("/")
    for i in range(1, len(parts)):
        yield "/".join(parts[:i])


class PatternSet:
    """An ordered, de-duplicated collection of patterns.

    Order never affects the result of a match.
    """

    def __init__(self, patterns: Iterable[str] = ()):
        seen: dict[str, Pattern] = {}
        for raw in patterns:
            if raw and raw.strip() and raw not in seen:
                seen[raw] = Pattern.parse(raw)
        self.patterns: tuple[Pattern, ...] = tuple(seen.values())

    def __len__(self) -> int:
        return len(self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def __iter__(self) -> Iterator[Pattern]:
        return iter(self.patterns)

    def matches_any(self, relative_path: str, is_dir: Optional[bool] = None) -> bool:
        """Check whether the path itself matches any pattern."""
        return any(pattern.matches(relative_path, is_dir) for pattern in self.patterns)

    def matches_path_or_ancestor(
        self, relative_path: str, is_dir: Optional[bool] = None
    ) -> bool:
        """Check whether the path or one of its ancestors matches."""
        path = normalize_relative_path(relative_path)
        if self.matches_any(path, is_dir):
            return True
        return any(
            self.matches_any(ancestor, is_dir=True) for ancestor in _ancestors(path)
        )

    def is_excluded(self, relative_path: str, is_dir: Optional[bool] = None) -> bool:
        """Check whether an exclude pattern covers the path or an ancestor."""
        return self.matches_path_or_ancestor(relative_path, is_dir)

    def is_included(self, relative_path: str, is_dir: Optional[bool] = None) -> bool:
        """Check whether an include pattern selects the path or an ancestor."""
        return self.matches_path_or_ancestor(relative_path, is_dir)

    def is_ancestor_of_match(self, directory: str) -> bool:
        """Check whether an include pattern selects something below a directory."""
        return any(pattern.may_match_below(directory) for pattern in self.patterns)


def rsync_filter_rules(
    excludes: Iterable[str], includes: Iterable[str] = ()
) -> list[tuple[str, str]]:
    """Translate exclude and include patterns into rsync filter rules.

    Excludes come first. Includes are preceded by their ancestor directories
    so rsync descends into them, and followed by a catch-all exclude.

    Args:
        excludes: Exclude patterns
        includes: Include patterns; empty means no restriction

    Returns:
        ("exclude" | "include", rule) pairs in order
    """
    rules: list[tuple[str, str]] = []
    for pattern in PatternSet(excludes):
        rules.append(("exclude", pattern.to_rsync()))

    include_set = PatternSet(includes)
    if not include_set:
        return rules

    include_rules: list[str] = []
    descend_all = False
    for pattern in include_set:
        if not pattern.anchored:
            descend_all = True
            include_rules.append(pattern.to_rsync())
            include_rules.append(f"{pattern.body}/***")
            continue
        for ancestor in _ancestors(pattern.body):
            if "**" in ancestor.rsplit("/", 1)[-1]:
                descend_all = True
                break
            include_rules.append(f"/{ancestor}/")
        include_rules.append(pattern.to_rsync())
        include_rules.append(f"/{pattern.body}/***")

    if descend_all:
        include_rules.insert(0, "*/")
    for rule in dict.fromkeys(include_rules):
        rules.append(("include", rule))
    rules.append(("exclude", "*"))
    return rules
