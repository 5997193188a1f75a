# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""
Windows certificate store backend (pywin32 ``win32crypt``).

Uses the current user's ``MY`` store.  Access is governed by the logged-in
Windows session, so no secret is ever needed; the CSP may still show its
own PIN dialog when a smart-card key is used.
"""

from __future__ import annotations

__all__ = ["WindowsStore"]

import logging
from typing import TYPE_CHECKING, Any

from asn1crypto import x509 as asn1_x509

from ..core.cert_info import load_certificate
from ..core.chain import build_path
from ..errors import CertificateError, NoCredentialFound, SigningFailed, StoreReadError
from .protocol import StoreKind

if TYPE_CHECKING:
    from types import TracebackType

_logger = logging.getLogger(__name__)

# wincrypt.h
CERT_STORE_PROV_SYSTEM = 10
CERT_SYSTEM_STORE_CURRENT_USER = 0x00010000
CERT_STORE_READONLY_FLAG = 0x00008000
CERT_KEY_PROV_INFO_PROP_ID = 2
CERT_FRIENDLY_NAME_PROP_ID = 11

_HASH_ALGIDS = {
    "sha1": 0x8004,  # CALG_SHA1
    "sha256": 0x800C,  # CALG_SHA_256
    "sha384": 0x800D,  # CALG_SHA_384
    "sha512": 0x800E,  # CALG_SHA_512
}

_PERSONAL_STORE = "MY"
_ISSUER_STORES = ("CA", "ROOT")


def _require_win32crypt() -> tuple[Any, type[Exception]]:
    """Lazily import win32crypt and the pywintypes error class.

    pywin32 only installs on Windows; the import is deferred so the rest of
    cardsign loads everywhere.
    """
    try:
        import pywintypes
        import win32crypt
    except ImportError as exc:
        raise StoreReadError(
            "pywin32 is required for the Windows certificate store.\n"
            "Install with: pip install pywin32"
        ) from exc
    else:
        return win32crypt, pywintypes.error


class _CapiKey:
    """Private key reached through CryptoAPI."""

    __slots__ = ("_context", "_error")

    def __init__(self, context: Any, error: type[Exception]) -> None:
        self._context = context
        self._error = error

    def sign(self, data: bytes, digest_algorithm: str) -> bytes:
        algid = _HASH_ALGIDS.get(digest_algorithm)
        if algid is None:
            raise SigningFailed(f"Unsupported digest algorithm: {digest_algorithm}")
        try:
            keyspec, provider = self._context.CryptAcquireCertificatePrivateKey()
            hash_obj = provider.CryptCreateHash(algid)
            hash_obj.CryptHashData(data)
            signature = hash_obj.CryptSignHash(keyspec)
        except self._error as exc:
            raise SigningFailed(f"CryptoAPI refused to sign: {exc}") from exc
        # CryptoAPI returns little-endian
        return bytes(reversed(signature))


class WindowsStore:
    """Credential store over the Windows ``MY`` certificate store."""

    kind = StoreKind.OS

    def __init__(self) -> None:
        self._store: Any = None
        self._error: type[Exception] = Exception
        # alias -> (certificate, certificate context)
        self._entries: dict[str, tuple[asn1_x509.Certificate, Any]] = {}

    def requires_secret(self) -> bool:
        return False

    def _open(self, win32crypt: Any, name: str) -> Any:
        return win32crypt.CertOpenStore(
            CERT_STORE_PROV_SYSTEM,
            0,
            None,
            CERT_SYSTEM_STORE_CURRENT_USER | CERT_STORE_READONLY_FLAG,
            name,
        )

    def _property(self, context: Any, prop_id: int) -> Any:
        try:
            return context.CertGetCertificateContextProperty(prop_id)
        except self._error:
            return None

    def _alias_for(self, context: Any, cert: asn1_x509.Certificate) -> str:
        friendly = self._property(context, CERT_FRIENDLY_NAME_PROP_ID)
        if isinstance(friendly, bytes):
            friendly = friendly.decode("utf-16-le", "replace")
        if friendly:
            return str(friendly).rstrip("\x00")
        return cert.subject.human_friendly

    def load(self, secret: str | None = None) -> None:
        if secret is not None:
            raise StoreReadError("The Windows certificate store does not take a secret")

        win32crypt, self._error = _require_win32crypt()
        self.close()
        try:
            self._store = self._open(win32crypt, _PERSONAL_STORE)
            contexts = self._store.CertEnumCertificatesInStore()
        except self._error as exc:
            self.close()
            raise StoreReadError(f"Cannot open the personal certificate store: {exc}") from exc

        entries: dict[str, tuple[asn1_x509.Certificate, Any]] = {}
        for context in contexts:
            if self._property(context, CERT_KEY_PROV_INFO_PROP_ID) is None:
                continue
            try:
                cert = load_certificate(bytes(context.CertEncoded))
            except CertificateError as exc:
                _logger.debug("Skipping unreadable certificate in personal store: %s", exc)
                continue
            alias = self._alias_for(context, cert)
            if alias in entries:
                alias = f"{alias} ({cert.serial_number:x})"
            entries[alias] = (cert, context)

        if not entries:
            self.close()
            raise NoCredentialFound("No certificate with a private key in the personal store")

        self._entries = entries
        _logger.debug("Windows store: %d certificate(s) with a private key", len(entries))

    def _issuer_pool(self) -> list[asn1_x509.Certificate]:
        win32crypt, _ = _require_win32crypt()
        pool = [cert for cert, _ in self._entries.values()]
        for name in _ISSUER_STORES:
            try:
                store = self._open(win32crypt, name)
            except self._error as exc:
                _logger.debug("Cannot open %s store: %s", name, exc)
                continue
            try:
                for ctx in store.CertEnumCertificatesInStore():
                    try:
                        pool.append(load_certificate(bytes(ctx.CertEncoded)))
                    except CertificateError as exc:
                        _logger.debug("Skipping unreadable certificate in %s store: %s", name, exc)
            finally:
                store.CertCloseStore()
        return pool

    def aliases(self) -> list[str]:
        return list(self._entries)

    def certificate(self, alias: str) -> asn1_x509.Certificate | None:
        entry = self._entries.get(alias)
        return entry[0] if entry else None

    def chain(self, alias: str) -> list[asn1_x509.Certificate] | None:
        entry = self._entries.get(alias)
        if entry is None:
            return None
        return build_path(entry[0], self._issuer_pool())

    def private_key(self, alias: str) -> _CapiKey | None:
        entry = self._entries.get(alias)
        if entry is None:
            return None
        return _CapiKey(entry[1], self._error)

    def close(self) -> None:
        store, self._store = self._store, None
        self._entries = {}
        if store is not None:
            store.CertCloseStore()

    def __enter__(self) -> WindowsStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
