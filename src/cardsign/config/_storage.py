"""
Low-level config file I/O for cardsign.

Handles reading, writing, and validating the on-disk config.json.
"""

from __future__ import annotations

__all__ = [
    "BACKEND_CHOICES",
    "CONFIG_DIR",
    "CONFIG_FILE",
    "ConfigDict",
    "load_config",
    "load_raw_config",
    "save_config",
]

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, TypedDict, cast

_logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".cardsign"
CONFIG_FILE = CONFIG_DIR / "config.json"

BACKEND_CHOICES = ("auto", "os", "pkcs11")


class ConfigDict(TypedDict, total=False):
    """Type definition for the config file structure."""

    backend: str
    pkcs11_library: str
    pkcs11_slot: int


def load_raw_config() -> dict[str, object]:
    """Load raw config dict from disk, preserving all keys.

    Unknown keys survive a merge-and-save so newer config files are not
    truncated by older versions.
    """
    try:
        data: Any = json.loads(CONFIG_FILE.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            return cast("dict[str, object]", data)
    except FileNotFoundError:
        pass
    except json.JSONDecodeError as e:
        _logger.warning("Config file corrupted, ignoring: %s", e)
    except OSError as e:
        _logger.warning("Cannot read config file: %s", e)
    return {}


def _validate_config_dict(data: dict[str, object]) -> ConfigDict:
    """Pick only known keys with correct types."""
    result: ConfigDict = {}

    backend = data.get("backend")
    if isinstance(backend, str):
        if backend in BACKEND_CHOICES:
            result["backend"] = backend
        else:
            _logger.warning("Config backend=%r unknown, ignoring", backend)

    library = data.get("pkcs11_library")
    if isinstance(library, str) and library:
        result["pkcs11_library"] = library

    slot = data.get("pkcs11_slot")
    # bool is an int subclass
    if isinstance(slot, int) and not isinstance(slot, bool):
        if slot >= 0:
            result["pkcs11_slot"] = slot
        else:
            _logger.warning("Config pkcs11_slot=%d is negative, ignoring", slot)

    return result


def load_config() -> ConfigDict:
    """Load config from disk, returning only known typed keys."""
    return _validate_config_dict(load_raw_config())


def save_config(config: dict[str, object]) -> None:
    """Save config to disk with restricted permissions (0600).

    Uses atomic write (temp file + rename) so an interrupted write never
    leaves a truncated file behind.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True, mode=0o700)
    if os.name != "nt":
        try:
            CONFIG_DIR.chmod(0o700)
        except OSError:
            _logger.warning("Failed to set restrictive permissions on %s", CONFIG_DIR)
    content = json.dumps(config, indent=2, ensure_ascii=False) + "\n"
    fd, tmp_path = tempfile.mkstemp(dir=CONFIG_DIR, suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        f = os.fdopen(fd, "w", encoding="utf-8")
        fd = -1
        with f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if os.name != "nt":
            try:
                tmp.chmod(0o600)
            except OSError:
                _logger.exception("Failed to set restrictive permissions on %s", tmp)
        tmp.replace(CONFIG_FILE)
    except BaseException:
        if fd >= 0:
            os.close(fd)
        tmp.unlink(missing_ok=True)
        raise
