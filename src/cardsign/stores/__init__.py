"""
Credential store backends and host probing.

``select_store_kind`` picks the backend for the running platform and
``create_store`` instantiates it from the effective settings.
"""

from __future__ import annotations

__all__ = [
    "CredentialStore",
    "PrivateKeyHandle",
    "StoreKind",
    "create_store",
    "resolve_store_kind",
    "select_store_kind",
]

import logging
import sys
from typing import TYPE_CHECKING

from ..errors import StoreSelectionError
from .protocol import CredentialStore, PrivateKeyHandle, StoreKind

if TYPE_CHECKING:
    from ..config.config import StoreSettings

_logger = logging.getLogger(__name__)


def select_store_kind(platform: str | None = None) -> StoreKind:
    """
    Pick the credential store for a host platform.

    Windows uses the OS certificate repository; Linux and macOS use a
    PKCS#11 token.  The PKCS#12 file backend is never picked automatically.

    Args:
        platform: ``sys.platform`` style name; defaults to the running host.

    Raises:
        StoreSelectionError: No backend exists for the platform.
    """
    if platform is None:
        platform = sys.platform
    if platform == "win32":
        return StoreKind.OS
    if platform.startswith("linux") or platform == "darwin":
        return StoreKind.PKCS11
    raise StoreSelectionError(f"No credential store available on platform '{platform}'")


def resolve_store_kind(settings: StoreSettings) -> StoreKind:
    """Apply a configured backend override, falling back to host probing."""
    if settings.pkcs12_path:
        return StoreKind.PKCS12
    if settings.backend != "auto":
        return StoreKind(settings.backend)
    return select_store_kind()


def create_store(kind: StoreKind | None = None, settings: StoreSettings | None = None) -> CredentialStore:
    """
    Instantiate a credential store.

    Args:
        kind: Backend to build; resolved from *settings* when omitted.
        settings: Effective settings; loaded from config/env when omitted.
    """
    if settings is None:
        from ..config.config import get_store_settings

        settings = get_store_settings()
    if kind is None:
        kind = resolve_store_kind(settings)

    _logger.debug("Creating %s credential store", kind.label)

    if kind is StoreKind.OS:
        from .windows import WindowsStore

        return WindowsStore()

    if kind is StoreKind.PKCS11:
        from .pkcs11 import Pkcs11Store

        return Pkcs11Store(settings.pkcs11_library, settings.pkcs11_slot)

    from .pkcs12 import Pkcs12Store

    if not settings.pkcs12_path:
        return Pkcs12Store()
    return Pkcs12Store.from_file(settings.pkcs12_path)
