"""Utility functions for CLI output formatting."""

from typing import Optional

from cli.constants import GREEN, RED, RESET, YELLOW
from uploader.keys import format_storage_key_for_display, generate_storage_url


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


def status_label(success: bool, skipped: bool = False) -> str:
    """Colored one-word status for summaries."""
    if skipped:
        return f"{YELLOW}already stored{RESET}"
    if success:
        return f"{GREEN}ok{RESET}"
    return f"{RED}failed{RESET}"


def describe_key(storage_key: str) -> str:
    """Render a storage key for display, noting when it was decoded from padded hex."""
    text, decoded = format_storage_key_for_display(storage_key)
    return f"{text} (decoded)" if decoded else text


def storage_url_line(operator_address: Optional[str], chain_id: int, storage_key: str) -> str:
    url = generate_storage_url(operator_address, chain_id, storage_key)
    return f"  URL:        {url}" if url else "  URL:        (unknown operator)"
