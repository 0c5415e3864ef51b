"""Transfer planning: patterns, previews, staging and statistics."""

from .patterns import Pattern, PatternKind, PatternSet, matches, rsync_filter_rules
from .preview import DirectorySyncPreviewer, SyncPlanEntry
from .selection import SelectionRules, build_selection_rules
from .staging import LocalStagingService
from .stats import (
    DryRunSummary,
    TransferStats,
    format_note_lines,
    parse_dry_run_summary,
    parse_stats,
)

__all__ = [
    "DirectorySyncPreviewer",
    "DryRunSummary",
    "LocalStagingService",
    "Pattern",
    "PatternKind",
    "PatternSet",
    "SelectionRules",
    "SyncPlanEntry",
    "TransferStats",
    "build_selection_rules",
    "format_note_lines",
    "matches",
    "parse_dry_run_summary",
    "parse_stats",
    "rsync_filter_rules",
]
