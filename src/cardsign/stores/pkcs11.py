"""
Hardware token backend (``python-pkcs11``).

The token is opened with the user PIN on :meth:`Pkcs11Store.load` and the
session stays open until :meth:`Pkcs11Store.close`.  Provider errors are
classified into the cardsign failure kinds by exception class first and by
message text second, since vendor modules differ in what they raise.
"""

from __future__ import annotations

__all__ = ["Pkcs11Store", "classify_provider_error"]

import logging
from typing import TYPE_CHECKING, Any

import pkcs11
from asn1crypto import x509 as asn1_x509
from pkcs11 import Attribute, Mechanism, ObjectClass
from pkcs11 import exceptions as p11_exc

from ..constants import DEFAULT_PKCS11_SLOT
from ..core.cert_info import load_certificate
from ..core.chain import build_path
from ..errors import (
    AuthenticationRequired,
    CardSignError,
    CertificateError,
    IncorrectSecret,
    NoCredentialFound,
    SigningFailed,
    StoreReadError,
)
from .protocol import StoreKind

if TYPE_CHECKING:
    from types import TracebackType

_logger = logging.getLogger(__name__)

_MECHANISMS = {
    "sha1": Mechanism.SHA1_RSA_PKCS,
    "sha224": Mechanism.SHA224_RSA_PKCS,
    "sha256": Mechanism.SHA256_RSA_PKCS,
    "sha384": Mechanism.SHA384_RSA_PKCS,
    "sha512": Mechanism.SHA512_RSA_PKCS,
}

_INCORRECT_SECRET_TYPES = (p11_exc.PinIncorrect, p11_exc.PinInvalid, p11_exc.PinLenRange)
_NOT_PRESENT_TYPES = (
    p11_exc.TokenNotPresent,
    p11_exc.TokenNotRecognised,
    p11_exc.NoSuchToken,
    p11_exc.SlotIDInvalid,
    p11_exc.DeviceRemoved,
)

# Lowercased message fragments, checked in order
_MESSAGE_PATTERNS: tuple[tuple[str, type[CardSignError]], ...] = (
    ("ckr_pin_incorrect", IncorrectSecret),
    ("pin incorrect", IncorrectSecret),
    ("ckr_user_not_logged_in", AuthenticationRequired),
    ("pin required", AuthenticationRequired),
    ("cannot open library", NoCredentialFound),
    ("token not present", NoCredentialFound),
    ("not found", NoCredentialFound),
)


def classify_provider_error(exc: BaseException) -> CardSignError:
    """
    Map a provider exception to a cardsign error.

    The returned error is not chained; callers raise it ``from exc``.
    """
    message = str(exc) or type(exc).__name__

    if isinstance(exc, _INCORRECT_SECRET_TYPES):
        return IncorrectSecret(f"PIN rejected by token: {message}")
    if isinstance(exc, p11_exc.UserNotLoggedIn):
        return AuthenticationRequired(f"Token requires login: {message}")
    if isinstance(exc, _NOT_PRESENT_TYPES):
        return NoCredentialFound(f"Token not available: {message}")

    lowered = message.lower()
    for fragment, error_cls in _MESSAGE_PATTERNS:
        if fragment in lowered:
            return error_cls(message)
    return StoreReadError(f"Token error: {message}")


class _TokenKey:
    """Private key object living on the token."""

    __slots__ = ("_key",)

    def __init__(self, key: Any) -> None:
        self._key = key

    def sign(self, data: bytes, digest_algorithm: str) -> bytes:
        mechanism = _MECHANISMS.get(digest_algorithm)
        if mechanism is None:
            raise SigningFailed(f"Unsupported digest algorithm: {digest_algorithm}")
        try:
            return bytes(self._key.sign(data, mechanism=mechanism))
        except p11_exc.PKCS11Error as exc:
            raise SigningFailed(f"Token refused to sign: {exc}") from exc


class Pkcs11Store:
    """Credential store on a PKCS#11 token.

    Args:
        library_path: Vendor PKCS#11 module (``.so``/``.dylib``/``.dll``).
        slot: Index into the list of slots with a token present.
    """

    kind = StoreKind.PKCS11

    def __init__(self, library_path: str, slot: int = DEFAULT_PKCS11_SLOT) -> None:
        self._library_path = library_path
        self._slot = slot
        self._session: Any = None
        # alias -> (certificate, CKA_ID)
        self._entries: dict[str, tuple[asn1_x509.Certificate, bytes]] = {}
        self._pool: list[asn1_x509.Certificate] = []

    @property
    def library_path(self) -> str:
        return self._library_path

    @property
    def slot(self) -> int:
        return self._slot

    def requires_secret(self) -> bool:
        return True

    def _open_token(self) -> Any:
        try:
            lib = pkcs11.lib(self._library_path)
        except (OSError, RuntimeError) as exc:
            raise NoCredentialFound(
                f"Cannot open PKCS#11 library {self._library_path}: {exc}"
            ) from exc

        slots = lib.get_slots(token_present=True)
        if not slots:
            raise NoCredentialFound(f"No token present ({self._library_path})")
        if self._slot >= len(slots):
            raise NoCredentialFound(
                f"Slot index {self._slot} too large; there are only {len(slots)}"
            )
        return slots[self._slot].get_token()

    def load(self, secret: str | None = None) -> None:
        if not secret:
            raise AuthenticationRequired("PIN required to open the token")

        self.close()
        try:
            token = self._open_token()
            _logger.debug("Opening session on token '%s'", token.label)
            self._session = token.open(user_pin=secret)
            self._index_objects()
        except p11_exc.PKCS11Error as exc:
            self.close()
            raise classify_provider_error(exc) from exc
        except CardSignError:
            self.close()
            raise

    def _index_objects(self) -> None:
        entries: dict[str, tuple[asn1_x509.Certificate, bytes]] = {}
        pool: list[asn1_x509.Certificate] = []

        for obj in self._session.get_objects({Attribute.CLASS: ObjectClass.CERTIFICATE}):
            try:
                cert = load_certificate(bytes(obj[Attribute.VALUE]))
            except CertificateError as exc:
                _logger.debug("Skipping unreadable certificate object: %s", exc)
                continue
            pool.append(cert)
            try:
                cert_id = bytes(obj[Attribute.ID])
            except p11_exc.PKCS11Error:
                continue
            try:
                self._session.get_key(ObjectClass.PRIVATE_KEY, id=cert_id)
            except p11_exc.NoSuchKey:
                continue
            try:
                alias = str(obj[Attribute.LABEL]) or cert_id.hex()
            except p11_exc.PKCS11Error:
                alias = cert_id.hex()
            entries[alias] = (cert, cert_id)

        self._entries = entries
        self._pool = pool
        _logger.debug(
            "Token holds %d certificate(s), %d with a private key", len(pool), len(entries)
        )

    def aliases(self) -> list[str]:
        return list(self._entries)

    def certificate(self, alias: str) -> asn1_x509.Certificate | None:
        entry = self._entries.get(alias)
        return entry[0] if entry else None

    def chain(self, alias: str) -> list[asn1_x509.Certificate] | None:
        entry = self._entries.get(alias)
        if entry is None:
            return None
        return build_path(entry[0], self._pool)

    def private_key(self, alias: str) -> _TokenKey | None:
        entry = self._entries.get(alias)
        if entry is None or self._session is None:
            return None
        try:
            key = self._session.get_key(ObjectClass.PRIVATE_KEY, id=entry[1])
        except p11_exc.PKCS11Error as exc:
            _logger.debug("Private key for '%s' unavailable: %s", alias, exc)
            return None
        return _TokenKey(key)

    def close(self) -> None:
        session, self._session = self._session, None
        self._entries = {}
        self._pool = []
        if session is not None:
            try:
                session.close()
            except p11_exc.PKCS11Error as exc:
                _logger.debug("Error closing token session: %s", exc)

    def __enter__(self) -> Pkcs11Store:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
