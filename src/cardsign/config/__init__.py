"""
Configuration management.

Import from this package rather than from the individual submodules.
"""

from __future__ import annotations

from .config import (
    CONFIG_FILE,
    StoreSettings,
    default_pkcs11_library,
    get_store_settings,
    reset_config,
    save_store_settings,
)

__all__ = [
    "CONFIG_FILE",
    "StoreSettings",
    "default_pkcs11_library",
    "get_store_settings",
    "reset_config",
    "save_store_settings",
]
