import re
import time
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

# Discord's hard message length limit, minus room for the prefix
ERROR_MESSAGE_LIMIT = 1900

URL_RE = re.compile(r"https?://[^\s<>)\"']+", re.IGNORECASE)


def filename_from_url(url: str) -> str:
    """
    Derive a filename from the last path segment of a URL.

    Args:
        url (str): Source URL, query string allowed.

    Returns:
        str: Decoded basename, or `file_<ms>` when the path has none.
    """
    try:
        base = PurePosixPath(urlparse(url).path).name
    except ValueError:
        base = ""
    return unquote(base) or f"file_{int(time.time() * 1000)}"


def find_url(text: str | None) -> str | None:
    """Return the first http(s) URL in a message body, if any."""
    if not text:
        return None
    match = URL_RE.search(text)
    return match.group(0) if match else None


def progress_bar(sent: int, total: int, width: int = 10) -> str:
    """
    Render upload progress as a text bar.

    Args:
        sent (int): Bytes uploaded so far.
        total (int): Total bytes; non-positive totals render as 0%.
        width (int): Number of cells in the bar.

    Returns:
        str: e.g. ``[█████░░░░░] 50%``.
    """
    percentage = min(100, int(sent * 100 / total)) if total > 0 else 0
    filled = percentage * width // 100
    return f"[{'█' * filled}{'░' * (width - filled)}] {percentage}%"


def format_file_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def truncate(text: str, limit: int = ERROR_MESSAGE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "... (truncated)"
