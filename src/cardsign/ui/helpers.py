"""
Common CLI helper functions for cardsign.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

from ..constants import SIGNATURE_SUFFIX

__all__ = [
    "atomic_write",
    "default_signature_path",
    "format_size_kb",
    "prompt_secret",
    "safe_read_file",
]

_BYTES_PER_KB = 1024


def format_size_kb(size_bytes: int) -> str:
    """Format a byte count as a human-readable KB string (e.g. '123.4 KB')."""
    return f"{size_bytes / _BYTES_PER_KB:.1f} KB"


def default_signature_path(path: Path) -> Path:
    """Detached signature path for a document: '<name>.p7s' beside it."""
    return path.with_name(path.name + SIGNATURE_SUFFIX)


def safe_read_file(path: Path, kind: str = "file") -> bytes | None:
    """
    Read a file with uniform error handling.

    Args:
        path: Path to the file to read.
        kind: Descriptive name for error messages (e.g., "document", "signature").

    Returns:
        File contents as bytes, or None if the file doesn't exist or can't be read.
    """
    if not path.exists():
        print(f"Error: {kind} not found: {path}", file=sys.stderr)
        return None

    try:
        return path.read_bytes()
    except OSError as e:
        print(f"Error reading {kind}: {e}", file=sys.stderr)
        return None


def prompt_secret(label: str = "PIN") -> str | None:
    """Prompt for a PIN or password without echo.

    Returns:
        The entered secret, or None if cancelled (Ctrl-C, Ctrl-D) or empty.
    """
    import getpass

    try:
        secret = getpass.getpass(f"{label}: ")
    except (EOFError, KeyboardInterrupt):
        print()
        return None
    return secret or None


def atomic_write(path: Path, data: bytes) -> None:
    """Write data to a file atomically using temp file + rename.

    Args:
        path: Target file path.
        data: Bytes to write.
    """
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        os.write(fd, data)
        os.fsync(fd)
        os.close(fd)
        fd = -1
        tmp.replace(path)
    except Exception:
        if fd >= 0:
            os.close(fd)
        tmp.unlink(missing_ok=True)
        raise
