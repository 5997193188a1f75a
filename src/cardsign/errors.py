"""cardsign error types.

Every failure that crosses the signing engine boundary is a
:class:`CardSignError` carrying a :class:`FailureKind`, so callers can
branch on the kind instead of on exception classes.
"""

from __future__ import annotations

import enum

__all__ = [
    "AuthenticationRequired",
    "CardSignError",
    "CertificateError",
    "ConfigError",
    "FailureKind",
    "IncorrectSecret",
    "NoCredentialFound",
    "SigningFailed",
    "StoreReadError",
    "StoreSelectionError",
]


class FailureKind(enum.Enum):
    """Closed set of failure kinds reported by the signing engine."""

    AUTHENTICATION_REQUIRED = "authentication-required"
    INCORRECT_SECRET = "incorrect-secret"
    NO_CREDENTIAL_FOUND = "no-credential-found"
    STORE_READ_ERROR = "store-read-error"
    SIGNING_FAILED = "signing-failed"
    CERTIFICATE_ERROR = "certificate-error"
    CONFIG_ERROR = "config-error"

    @property
    def retryable(self) -> bool:
        """True when re-prompting for the secret can resolve the failure."""
        return self in (FailureKind.AUTHENTICATION_REQUIRED, FailureKind.INCORRECT_SECRET)


class CardSignError(Exception):
    """Base error for cardsign operations."""

    kind: FailureKind = FailureKind.STORE_READ_ERROR


class AuthenticationRequired(CardSignError):
    """The credential store needs a PIN or password that was not supplied."""

    kind = FailureKind.AUTHENTICATION_REQUIRED


class IncorrectSecret(CardSignError):
    """The supplied PIN or password was rejected by the store."""

    kind = FailureKind.INCORRECT_SECRET


class NoCredentialFound(CardSignError):
    """No token, library or usable certificate was found."""

    kind = FailureKind.NO_CREDENTIAL_FOUND


class StoreReadError(CardSignError):
    """I/O, algorithm or parsing failure while loading a credential store."""

    kind = FailureKind.STORE_READ_ERROR


class StoreSelectionError(StoreReadError):
    """The running platform has no credential store backend."""


class SigningFailed(CardSignError):
    """Any failure inside the signing pipeline."""

    kind = FailureKind.SIGNING_FAILED


class CertificateError(CardSignError):
    """Certificate or CMS structure could not be parsed."""

    kind = FailureKind.CERTIFICATE_ERROR


class ConfigError(CardSignError):
    """Configuration validation error."""

    kind = FailureKind.CONFIG_ERROR
