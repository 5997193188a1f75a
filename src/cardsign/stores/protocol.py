"""
Credential store abstraction.

Defines the interface every backend (OS repository, hardware token,
PKCS#12 file) implements.  The signing orchestrator depends on these
protocols only, never on a concrete backend.
"""

from __future__ import annotations

__all__ = ["CredentialStore", "PrivateKeyHandle", "StoreKind"]

import enum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from types import TracebackType

    from asn1crypto import x509 as asn1_x509


class StoreKind(enum.Enum):
    """Available credential store backends."""

    OS = "os"
    PKCS11 = "pkcs11"
    PKCS12 = "pkcs12"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    StoreKind.OS: "Windows certificate store",
    StoreKind.PKCS11: "PKCS#11 token",
    StoreKind.PKCS12: "PKCS#12 file",
}


class PrivateKeyHandle(Protocol):
    """Opaque handle to a private key that never leaves its provider."""

    def sign(self, data: bytes, digest_algorithm: str) -> bytes:
        """
        Hash *data* with *digest_algorithm* and sign it (RSA PKCS#1 v1.5).

        Returns:
            Raw signature bytes, big-endian as CMS expects.

        Raises:
            SigningFailed: The provider refused or failed to sign.
        """
        ...


class CredentialStore(Protocol):
    """Protocol for credential stores.

    A store is loaded once (optionally with a PIN or password), then
    queried by alias.  Queries for unknown aliases return ``None``.
    """

    @property
    def kind(self) -> StoreKind: ...

    def requires_secret(self) -> bool:
        """True when :meth:`load` needs a PIN or password."""
        ...

    def load(self, secret: str | None = None) -> None:
        """
        Open the underlying repository.

        Raises:
            AuthenticationRequired: A secret is needed but was not given.
            IncorrectSecret: The secret was rejected.
            NoCredentialFound: No token, library or certificate is present.
            StoreReadError: Any other failure while reading the store.
        """
        ...

    def aliases(self) -> list[str]: ...

    def certificate(self, alias: str) -> asn1_x509.Certificate | None: ...

    def chain(self, alias: str) -> list[asn1_x509.Certificate] | None: ...

    def private_key(self, alias: str) -> PrivateKeyHandle | None: ...

    def close(self) -> None:
        """Release sessions and handles; safe to call more than once."""
        ...

    def __enter__(self) -> CredentialStore: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...
