"""
Credential store settings for cardsign.

Stores the backend choice and PKCS#11 module location in
~/.cardsign/config.json.  Environment variables override the file.
"""

from __future__ import annotations

__all__ = [
    "CONFIG_DIR",
    "CONFIG_FILE",
    "StoreSettings",
    "default_pkcs11_library",
    "get_store_settings",
    "reset_config",
    "save_store_settings",
]

import logging
import os
import sys
from dataclasses import dataclass

from ..constants import (
    DEFAULT_PKCS11_LIBRARIES,
    DEFAULT_PKCS11_SLOT,
    ENV_BACKEND,
    ENV_PKCS11_LIB,
    ENV_PKCS11_SLOT,
)
from ..errors import ConfigError
from ._storage import BACKEND_CHOICES, CONFIG_DIR, CONFIG_FILE, load_config, load_raw_config, save_config

_logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StoreSettings:
    """Effective credential store settings.

    Attributes:
        backend: "auto" (probe the host), "os" or "pkcs11".
        pkcs11_library: Path to the vendor PKCS#11 module.
        pkcs11_slot: Index of the token slot.
        pkcs12_path: PKCS#12 file to use instead; never persisted.
    """

    backend: str = "auto"
    pkcs11_library: str = ""
    pkcs11_slot: int = DEFAULT_PKCS11_SLOT
    pkcs12_path: str | None = None


def default_pkcs11_library(platform: str | None = None) -> str:
    """Vendor module path used when nothing is configured."""
    if platform is None:
        platform = sys.platform
    for prefix, path in DEFAULT_PKCS11_LIBRARIES.items():
        if platform.startswith(prefix):
            return path
    return DEFAULT_PKCS11_LIBRARIES["linux"]


def _env_backend() -> str | None:
    value = os.environ.get(ENV_BACKEND, "").strip().lower()
    if not value:
        return None
    if value not in BACKEND_CHOICES:
        _logger.warning("Invalid %s value %r, ignoring", ENV_BACKEND, value)
        return None
    return value


def _env_slot() -> int | None:
    value = os.environ.get(ENV_PKCS11_SLOT, "").strip()
    if not value:
        return None
    try:
        slot = int(value)
    except ValueError:
        _logger.warning("Invalid %s value %r, ignoring", ENV_PKCS11_SLOT, value)
        return None
    if slot < 0:
        _logger.warning("%s=%d is negative, ignoring", ENV_PKCS11_SLOT, slot)
        return None
    return slot


def get_store_settings() -> StoreSettings:
    """
    Resolve the effective store settings.

    Priority: env vars > config file > platform defaults.
    """
    config = load_config()

    backend = _env_backend() or config.get("backend", "auto")
    library = (
        os.environ.get(ENV_PKCS11_LIB, "").strip()
        or config.get("pkcs11_library")
        or default_pkcs11_library()
    )
    slot = _env_slot()
    if slot is None:
        slot = config.get("pkcs11_slot", DEFAULT_PKCS11_SLOT)

    return StoreSettings(backend=backend, pkcs11_library=library, pkcs11_slot=slot)


def save_store_settings(
    backend: str | None = None,
    pkcs11_library: str | None = None,
    pkcs11_slot: int | None = None,
) -> None:
    """Persist the given settings, leaving the others untouched.

    Raises:
        ConfigError: A value is out of range.
    """
    if backend is not None and backend not in BACKEND_CHOICES:
        raise ConfigError(
            f"Unknown backend '{backend}'. Choose one of: {', '.join(BACKEND_CHOICES)}"
        )
    if pkcs11_slot is not None and pkcs11_slot < 0:
        raise ConfigError(f"Slot index must be zero or greater, got {pkcs11_slot}")

    config = load_raw_config()
    if backend is not None:
        config["backend"] = backend
    if pkcs11_library is not None:
        if pkcs11_library:
            config["pkcs11_library"] = pkcs11_library
        else:
            config.pop("pkcs11_library", None)
    if pkcs11_slot is not None:
        config["pkcs11_slot"] = pkcs11_slot
    save_config(config)


def reset_config() -> None:
    """Clear all saved settings."""
    save_config({})
