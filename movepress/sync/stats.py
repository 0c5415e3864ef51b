"""Parsing and formatting of rsync transfer statistics."""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from ..utils import format_size, pluralize

logger = logging.getLogger(__name__)

_FILES_TOTAL = re.compile(r"Number of files:\s*([\d,]+)", re.IGNORECASE)
_FILES_TRANSFERRED = re.compile(
    r"Number of (?:regular )?files transferred:\s*([\d,]+)", re.IGNORECASE
)
_BYTES_TOTAL = re.compile(r"Total file size:\s*([\d,]+)\s*(?:bytes|B)?", re.IGNORECASE)
_BYTES_TRANSFERRED = re.compile(
    r"Total transferred file size:\s*([\d,]+)", re.IGNORECASE
)

# One itemized change per line: CODE:SIZE:PATH
_ITEMIZED_LINE = re.compile(r"^([<>ch.*][fdLDS][^:\n]*):(\d+):(.*)$", re.MULTILINE)


@dataclass(frozen=True)
class TransferStats:
    """Counters reported by rsync's ``--stats`` block."""

    files_total: Optional[int] = None
    """Files examined"""

    files_transferred: Optional[int] = None
    """Files whose content was transferred"""

    bytes_total: Optional[int] = None
    """Total size of the examined files"""

    bytes_transferred: Optional[int] = None
    """Total size of the transferred files"""

    @property
    def has_values(self) -> bool:
        """True if at least one counter was found."""
        return any(
            value is not None
            for value in (
                self.files_total,
                self.files_transferred,
                self.bytes_total,
                self.bytes_transferred,
            )
        )


@dataclass(frozen=True)
class DryRunSummary:
    """What a dry run would transfer, from the itemized change list."""

    files: int = 0
    """Regular files that would be transferred"""

    bytes: int = 0
    """Their total size"""


def _number(pattern: "re.Pattern[str]", output: str) -> Optional[int]:
    match = pattern.search(output)
    if match is None:
        return None
    return int(match.group(1).replace(",", ""))


def parse_stats(output: str) -> Optional[TransferStats]:
    """Extract the statistics block from rsync output.

    Args:
        output: Captured stdout of an rsync run with ``--stats``

    Returns:
        TransferStats, or None if no counter was found or the counters
        are inconsistent
    """
    stats = TransferStats(
        files_total=_number(_FILES_TOTAL, output),
        files_transferred=_number(_FILES_TRANSFERRED, output),
        bytes_total=_number(_BYTES_TOTAL, output),
        bytes_transferred=_number(_BYTES_TRANSFERRED, output),
    )
    if not stats.has_values:
        logger.debug("No rsync statistics found in output")
        return None

    for transferred, total, label in (
        (stats.files_transferred, stats.files_total, "files"),
        (stats.bytes_transferred, stats.bytes_total, "bytes"),
    ):
        if transferred is not None and total is not None and transferred > total:
            logger.warning(
                f"Ignoring rsync statistics: transferred {label} ({transferred}) "
                f"exceed the total ({total})"
            )
            return None

    return stats


def is_content_transfer(code: str) -> bool:
    """Check whether an itemize code stands for file data being sent.

    ``<`` and ``>`` mean data is sent or received, ``f`` a regular file.
    Directory creation (``cd...``), attribute-only updates (``.f...``),
    local changes and deletions do not move file data.
    """
    return len(code) >= 2 and code[0] in "<>" and code[1] == "f"


def parse_dry_run_summary(output: str) -> DryRunSummary:
    """Count the files and bytes an itemized dry run would transfer.

    Args:
        output: Captured stdout of ``rsync --dry-run --itemize-changes``
            using the ``%i:%l:%n%L`` output format

    Returns:
        DryRunSummary (zero counts when nothing would be transferred)
    """
    files = 0
    total_bytes = 0
    for match in _ITEMIZED_LINE.finditer(output):
        if is_content_transfer(match.group(1)):
            files += 1
            total_bytes += int(match.group(2))
    return DryRunSummary(files=files, bytes=total_bytes)


def format_note_lines(
    stats: Optional[TransferStats],
    dry_run_summary: Optional[DryRunSummary] = None,
    is_dry_run: bool = False,
) -> list[str]:
    """Render transfer statistics as short sentences.

    Args:
        stats: Parsed statistics block
        dry_run_summary: Itemized totals, preferred for dry runs
        is_dry_run: Phrase the first line as a prediction

    Returns:
        Up to two lines: what moved (or would move) and what was examined

    Examples:
        >>> format_note_lines(TransferStats(120, 5, 204800, 10240))
        ['Transferred 5 files (10.0 KB).', 'Examined 120 files (200.0 KB total).']
    """
    lines: list[str] = []
    if stats is None and dry_run_summary is None:
        return lines

    if is_dry_run and dry_run_summary is not None:
        files: Optional[int] = dry_run_summary.files
        size: Optional[int] = dry_run_summary.bytes
    elif stats is not None:
        files = stats.files_transferred
        size = stats.bytes_transferred
    else:
        files = None
        size = None

    verb = "Would transfer" if is_dry_run else "Transferred"
    if files is not None:
        lines.append(f"{verb} {pluralize(files, 'file')} ({format_size(size)}).")

    if stats is not None:
        if stats.files_total is not None:
            lines.append(
                f"Examined {pluralize(stats.files_total, 'file')} "
                f"({format_size(stats.bytes_total)} total)."
            )
        elif stats.bytes_total is not None:
            lines.append(f"Total dataset size: {format_size(stats.bytes_total)}.")

    return lines
