"""File sync between two environments."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from ..commands import RsyncRequest, format_for_display
from ..exceptions import CommandFailedError, PrerequisiteError
from ..git import GitService
from ..models import Environment
from ..output import OutputFormatter
from ..runner import CommandRunner
from ..utils import pluralize
from .preview import DirectorySyncPreviewer, SyncPlanEntry
from .selection import SelectionRules
from .staging import LocalStagingService
from .stats import (
    DryRunSummary,
    TransferStats,
    format_note_lines,
    parse_dry_run_summary,
    parse_stats,
)

logger = logging.getLogger(__name__)

# Version-control metadata never leaves its environment
DEFAULT_EXCLUDES: tuple[str, ...] = (".git/",)

# Longest preview printed before it is truncated
MAX_PREVIEW_ENTRIES = 50


@dataclass
class FileSyncResult:
    """Outcome of a file sync."""

    stats: Optional[TransferStats] = None
    """Parsed rsync statistics"""

    dry_run_summary: Optional[DryRunSummary] = None
    """Itemized totals of a dry run"""

    notes: list[str] = field(default_factory=list)
    """Human-readable statistics lines"""

    cancelled: bool = False
    """True if the user declined to continue after the preview"""


class FileSyncController:
    """Previews and runs the rsync transfer of an environment's files."""

    def __init__(
        self,
        runner: CommandRunner,
        output: OutputFormatter,
        dry_run: bool = False,
        staging: Optional[LocalStagingService] = None,
        git: Optional[GitService] = None,
    ):
        """Initialize the controller.

        Args:
            runner: Executes the transfer command
            output: Output formatter for progress and statistics
            dry_run: Simulate the transfer
            staging: Staging service for tracked-only pushes
            git: Source of the tracked file list
        """
        self.runner = runner
        self.output = output
        self.dry_run = dry_run
        self.staging = staging or LocalStagingService()
        self.git = git or GitService(runner)

    def sync(
        self,
        source: Environment,
        destination: Environment,
        excludes: list[str],
        delete: bool = False,
        selection: Optional[SelectionRules] = None,
        tracked_only: bool = False,
        confirm: Optional[Callable[[], bool]] = None,
    ) -> FileSyncResult:
        """Transfer the source root into the destination root.

        Args:
            source: Environment the files come from
            destination: Environment the files go to
            excludes: Merged exclude patterns
            delete: Remove destination files missing from the source
            selection: Restrict the transfer to selected paths
            tracked_only: Push only files tracked by git (local source)
            confirm: Called after the preview; returning False cancels

        Returns:
            FileSyncResult

        Raises:
            PrerequisiteError: If both environments are remote, or
                tracked_only is used with a remote source
            CommandFailedError: If rsync fails
        """
        if source.is_remote and destination.is_remote:
            raise PrerequisiteError(
                "Remote-to-remote file syncs are not supported; "
                "run the sync from one of the two hosts"
            )
        if tracked_only and source.is_remote:
            raise PrerequisiteError("--tracked-only requires a local source")

        selection = selection or SelectionRules()
        all_excludes = list(dict.fromkeys([*DEFAULT_EXCLUDES, *excludes]))

        if tracked_only:
            files = self.git.list_tracked_files(source.root_path)
            self.output.info(f"Staging {pluralize(len(files), 'tracked file')}...")
            with self.staging.staged(source.root_path, files) as staged_path:
                return self._transfer(
                    str(staged_path),
                    source,
                    destination,
                    all_excludes,
                    delete,
                    selection,
                    confirm,
                )

        return self._transfer(
            source.root_path,
            source,
            destination,
            all_excludes,
            delete,
            selection,
            confirm,
        )

    def preview(
        self, local_root: str, excludes: list[str], selection: SelectionRules
    ) -> list[SyncPlanEntry]:
        """Return the preview of a local source tree."""
        previewer = DirectorySyncPreviewer(
            excludes, selection.includes, restrict_to_includes=selection.restrict
        )
        return previewer.scan(Path(local_root))

    def _transfer(
        self,
        source_path: str,
        source: Environment,
        destination: Environment,
        excludes: list[str],
        delete: bool,
        selection: SelectionRules,
        confirm: Optional[Callable[[], bool]],
    ) -> FileSyncResult:
        if not source.is_remote:
            entries = self.preview(source_path, excludes, selection)
            self._display_preview(entries)
            if not entries:
                self.output.info("No files to transfer.")
        else:
            logger.debug("Remote source, skipping local preview")

        if confirm is not None and not self.dry_run and not confirm():
            self.output.warning("File sync cancelled")
            return FileSyncResult(cancelled=True)

        request = RsyncRequest(
            source=source_path,
            destination=destination.root_path,
            excludes=tuple(excludes),
            includes=selection.includes if selection.restrict else (),
            dry_run=self.dry_run,
            delete=delete,
            source_remote=source.remote,
            destination_remote=destination.remote,
        )
        command = request.render()
        self.output.command(format_for_display(command))

        result = self.runner.run(command)
        if not result.succeeded:
            raise CommandFailedError(
                "File sync failed",
                command=command,
                exit_code=result.exit_code,
                stderr=result.stderr,
            )

        stats = parse_stats(result.stdout)
        summary = parse_dry_run_summary(result.stdout) if self.dry_run else None
        notes = format_note_lines(stats, summary, is_dry_run=self.dry_run)
        if notes:
            self.output.note(notes)
        else:
            self.output.note(["Transfer statistics unavailable."])

        return FileSyncResult(stats=stats, dry_run_summary=summary, notes=notes)

    def _display_preview(self, entries: list[SyncPlanEntry]) -> None:
        if self.output.quiet or not entries:
            return

        total = DirectorySyncPreviewer.total_files(entries)
        self.output.info(f"Files to sync ({pluralize(total, 'file')}):")
        lines = []
        for entry in entries[:MAX_PREVIEW_ENTRIES]:
            if entry.collapsed:
                lines.append(f"{entry.path}/ ({pluralize(entry.count or 0, 'file')})")
            elif entry.is_dir:
                lines.append(f"{entry.path}/")
            else:
                lines.append(entry.path)
        self.output.listing(lines)
        hidden = len(entries) - MAX_PREVIEW_ENTRIES
        if hidden > 0:
            self.output.info(f"  ... and {pluralize(hidden, 'more entry', 'more entries')}")
