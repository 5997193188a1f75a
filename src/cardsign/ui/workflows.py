"""Shared listing, signing and verification workflows.

UI-agnostic orchestration around :class:`~cardsign.core.signing.SigningSession`.
The CLI is a thin wrapper around these functions.

Constraints:
- No stdout/stderr output (no print)
- No sys.exit()
- No argparse imports
- Returns structured results, never raises on business errors
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ..core.document import Document
from ..core.verify import verify_detached
from ..errors import CardSignError, FailureKind
from .helpers import atomic_write

if TYPE_CHECKING:
    from pathlib import Path

    from ..core.cert_info import CertificateMetadata
    from ..core.signing import SigningSession
    from ..core.verify import VerificationResult

_logger = logging.getLogger(__name__)


# ── Result types ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ListingResult:
    """Result of enumerating the credentials of a store."""

    ok: bool
    credentials: list[CertificateMetadata] = field(default_factory=list)
    failure: FailureKind | None = None
    error_message: str | None = None

    @property
    def needs_secret(self) -> bool:
        return self.failure is not None and self.failure.retryable


@dataclass(frozen=True, slots=True)
class SigningResult:
    """Result of a single signing operation."""

    ok: bool
    failure: FailureKind | None = None
    error_message: str | None = None
    alias: str | None = None
    output_path: Path | None = None
    output_size: int = 0

    @property
    def needs_secret(self) -> bool:
        return self.failure is not None and self.failure.retryable


# ── Error classification ──────────────────────────────────────────


def _classify_error(error: Exception) -> tuple[FailureKind | None, str]:
    """Map a caught exception to a failure kind and a display message."""
    if isinstance(error, CardSignError):
        return error.kind, str(error)

    if isinstance(error, ValueError):
        return FailureKind.SIGNING_FAILED, str(error)

    _logger.exception("Unexpected error")
    return None, "An unexpected error occurred. Check logs for details."


# ── Workflows ────────────────────────────────────────────────────


def list_credentials(session: SigningSession, secret: str | None = None) -> ListingResult:
    """Enumerate credentials, initializing the session when needed."""
    try:
        credentials = session.list_credentials(secret)
    except Exception as e:
        kind, message = _classify_error(e)
        return ListingResult(ok=False, failure=kind, error_message=message)
    return ListingResult(ok=True, credentials=credentials)


def sign_one_detached(
    session: SigningSession,
    document_bytes: bytes,
    output_path: Path,
    alias: str | None = None,
    secret: str | None = None,
) -> SigningResult:
    """Sign one document and write the ``.p7s`` atomically.

    Args:
        session: Signing session (initialized on demand).
        document_bytes: Raw document content (caller reads the file).
        output_path: Where to write the detached signature.
        alias: Credential to use; the first one in the store when omitted.
        secret: PIN or password for stores that need one.
    """
    try:
        if alias is None:
            credentials = session.list_credentials(secret)
            if not credentials:
                return SigningResult(
                    ok=False,
                    failure=FailureKind.NO_CREDENTIAL_FOUND,
                    error_message="No credential available for signing",
                )
            alias = credentials[0].alias
        signature = session.sign(alias, Document.from_bytes(document_bytes), secret)
    except Exception as e:
        kind, message = _classify_error(e)
        return SigningResult(ok=False, failure=kind, error_message=message, alias=alias)

    try:
        atomic_write(output_path, signature)
    except OSError as e:
        return SigningResult(
            ok=False,
            failure=FailureKind.SIGNING_FAILED,
            error_message=f"Cannot write {output_path}: {e}",
            alias=alias,
        )

    return SigningResult(ok=True, alias=alias, output_path=output_path, output_size=len(signature))


def verify_one_detached(signature_bytes: bytes, document_bytes: bytes) -> VerificationResult:
    """Verify a detached signature; problems are reported in the result."""
    return verify_detached(signature_bytes, Document.from_bytes(document_bytes))
