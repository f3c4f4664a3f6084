"""Utility functions for CLI output formatting."""

from cli.constants import RESET, STATUS_COLORS


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_status(status: str) -> str:
    """Status label colored by lifecycle state."""
    color = STATUS_COLORS.get(status)
    return f"{color}{status}{RESET}" if color else status


def format_progress_bar(percentage: int, width: int = 20) -> str:
    """
    Render ``[#####     ]  50%`` for a 0-100 percentage.
    """
    percentage = max(0, min(100, int(percentage)))
    filled = round(width * percentage / 100)
    return f"[{'#' * filled}{' ' * (width - filled)}] {percentage:3d}%"
