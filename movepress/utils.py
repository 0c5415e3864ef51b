"""Utility functions for movepress."""

import functools
import os
import re
from typing import Optional

# =============================================================================
# Constants
# =============================================================================

# Units used by format_size, 1024-based
SIZE_UNITS: tuple[str, ...] = ("B", "KB", "MB", "GB")

# Characters that turn a pattern into a glob
GLOB_CHARACTERS: str = "*?["


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: Optional[int]) -> str:
    """Format a byte count in human-readable format.

    The largest unit whose value is at least 1 is used, with one decimal
    place. Values beyond the gigabyte range stay in GB.

    Args:
        size_bytes: Size in bytes, or None when the size is not known

    Returns:
        Formatted size string

    Examples:
        >>> format_size(0)
        '0 B'
        >>> format_size(5555)
        '5.4 KB'
        >>> format_size(None)
        'unknown size'
    """
    if size_bytes is None:
        return "unknown size"
    if size_bytes == 0:
        return "0 B"

    value = float(size_bytes)
    unit_index = 0
    while value >= 1024 and unit_index < len(SIZE_UNITS) - 1:
        value /= 1024
        unit_index += 1

    return f"{value:.1f} {SIZE_UNITS[unit_index]}"


def pluralize(count: int, singular: str, plural: Optional[str] = None) -> str:
    """Return "N noun" with a thousands separator and the right noun form."""
    noun = singular if count == 1 else (plural or f"{singular}s")
    return f"{count:,} {noun}"


# =============================================================================
# Glob pattern utilities
# =============================================================================


def is_glob_pattern(pattern: str) -> bool:
    """Check if a string contains glob wildcard characters.

    Args:
        pattern: String to check

    Returns:
        True if the string contains *, ? or [

    Examples:
        >>> is_glob_pattern("*.log")
        True
        >>> is_glob_pattern("wp-config.php")
        False
    """
    return any(char in pattern for char in GLOB_CHARACTERS)


@functools.lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a path glob into a regular expression.

    ``*`` and ``?`` never match a path separator, ``**`` matches across
    separators and ``**/`` also matches zero directories. ``[seq]`` and
    ``[!seq]`` are character classes; an unterminated ``[`` is literal.

    Args:
        pattern: Glob pattern

    Returns:
        Compiled regex that must match the whole string
    """
    parts: list[str] = []
    i = 0
    length = len(pattern)

    while i < length:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                if pattern.startswith("**/", i):
                    parts.append("(?:.*/)?")
                    i += 3
                else:
                    parts.append(".*")
                    i += 2
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            # The first class character may itself be "]"
            end = pattern.find("]", i + 3 if pattern.startswith("[!", i) else i + 2)
            if end == -1:
                parts.append(re.escape(char))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body.replace(chr(92), chr(92) * 2)}]")
                i = end
        else:
            parts.append(re.escape(char))
        i += 1

    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def glob_match(pattern: str, name: str) -> bool:
    """Check if a name matches a glob pattern (case-sensitive).

    Args:
        pattern: Glob pattern (e.g. "*.log", "wp-content/**/cache")
        name: Name or relative path to test

    Returns:
        True if the whole name matches the pattern
    """
    return glob_to_regex(pattern).match(name) is not None


# =============================================================================
# Path utilities
# =============================================================================


def expand_user_path(path: str) -> str:
    """Expand a leading ``~`` in a path using HOME."""
    if path.startswith("~"):
        return os.path.expanduser(path)
    return path


def normalize_relative_path(path: str) -> str:
    """Normalize a relative path to forward slashes without outer separators."""
    return path.replace("\\", "/").strip("/")
