"""Preview of the files a sync would transfer."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Union

from .patterns import PatternSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncPlanEntry:
    """One line of a sync preview."""

    path: str
    """Path relative to the sync root (forward slashes)"""

    is_dir: bool
    """True for directory entries"""

    count: Optional[int]
    """Files covered by this entry; None for a directory whose children follow"""

    @property
    def collapsed(self) -> bool:
        """True if this directory entry stands for its whole subtree."""
        return self.is_dir and self.count is not None


class DirectorySyncPreviewer:
    """Walks a local tree and summarizes what a sync would transfer.

    A directory whose whole subtree is transferred collapses into a single
    entry carrying its file count. A directory that is only partly
    transferred is listed (count None) followed by its children, so the
    user sees exactly where excludes take effect.
    """

    def __init__(
        self,
        exclude_patterns: Iterable[str] = (),
        include_patterns: Iterable[str] = (),
        restrict_to_includes: bool = False,
    ):
        """Initialize the previewer.

        Args:
            exclude_patterns: Patterns whose matches are skipped
            include_patterns: Patterns selecting the transferred paths
            restrict_to_includes: Only consider included paths
        """
        self.excludes = PatternSet(exclude_patterns)
        self.includes = PatternSet(include_patterns)
        self.restrict = restrict_to_includes and bool(self.includes)

    def scan(
        self,
        current_path: Union[str, Path],
        base_path: Optional[Union[str, Path]] = None,
    ) -> list[SyncPlanEntry]:
        """Build the preview for a directory.

        Args:
            current_path: Directory to walk
            base_path: Root the entry paths are relative to
                (defaults to current_path)

        Returns:
            Entries in depth-first order, children sorted by name
        """
        current = Path(current_path)
        base = Path(base_path) if base_path is not None else current
        relative = current.relative_to(base).as_posix()
        if relative == ".":
            relative = ""

        logger.debug(f"Previewing sync of {current}")
        _count, _complete, entries = self._walk(current, relative)
        return entries

    @staticmethod
    def total_files(entries: list[SyncPlanEntry]) -> int:
        """Return the number of files a preview covers."""
        return sum(entry.count for entry in entries if entry.count is not None)

    def _is_skipped(self, relative_path: str, is_dir: bool) -> bool:
        # Ancestors were checked on the way down
        if self.excludes.matches_any(relative_path, is_dir):
            return True
        if not self.restrict:
            return False
        if self.includes.is_included(relative_path, is_dir):
            return False
        return not (is_dir and self.includes.is_ancestor_of_match(relative_path))

    def _walk(
        self, directory: Path, relative: str
    ) -> tuple[int, bool, list[SyncPlanEntry]]:
        """Return (file count, fully transferred, entries) for a directory."""
        count = 0
        complete = True
        entries: list[SyncPlanEntry] = []

        try:
            with os.scandir(directory) as it:
                items = sorted(it, key=lambda item: item.name)
        except OSError as e:
            logger.warning(f"Cannot read directory {directory}: {e}")
            return 0, False, []

        for item in items:
            item_relative = f"{relative}/{item.name}" if relative else item.name
            try:
                is_dir = item.is_dir(follow_symlinks=False)
            except OSError:
                is_dir = False

            if self._is_skipped(item_relative, is_dir):
                complete = False
                continue

            if not is_dir:
                count += 1
                entries.append(SyncPlanEntry(item_relative, False, 1))
                continue

            sub_count, sub_complete, sub_entries = self._walk(
                Path(item.path), item_relative
            )
            if not sub_complete:
                complete = False
            if sub_count == 0:
                continue

            count += sub_count
            if sub_complete:
                entries.append(SyncPlanEntry(item_relative, True, sub_count))
            else:
                entries.append(SyncPlanEntry(item_relative, True, None))
                entries.extend(sub_entries)

        return count, complete, entries
