"""
Signing orchestrator.

:class:`SigningSession` owns one credential store and drives it through
its lifecycle::

    UNINITIALIZED --initialize--> READY
          |                         |
          +--> AWAITING_AUTHENTICATION (secret needed, none given)
          +--> FAILED (store could not be read)

Queries and ``sign`` on a session that is not ready initialize it first.
A session is meant for one thread at a time.
"""

from __future__ import annotations

__all__ = ["SigningSession", "StoreState"]

import enum
import logging
from typing import TYPE_CHECKING

from ..constants import SIGNATURE_ALGORITHM
from ..errors import (
    AuthenticationRequired,
    CardSignError,
    IncorrectSecret,
    NoCredentialFound,
    SigningFailed,
    StoreReadError,
    StoreSelectionError,
)
from ..stores import create_store
from .cert_info import certificate_metadata
from .chain import order_chain
from .cms import build_signed_attributes, build_signed_message, digest_algorithm_for

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from asn1crypto import x509 as asn1_x509

    from ..stores import CredentialStore
    from .cert_info import CertificateMetadata
    from .document import Document

_logger = logging.getLogger(__name__)


class StoreState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    AWAITING_AUTHENTICATION = "awaiting-authentication"
    READY = "ready"
    FAILED = "failed"


class SigningSession:
    """
    Turns "alias + secret + document" into a detached CMS signature.

    Args:
        store_factory: Builds a fresh credential store; defaults to
            :func:`cardsign.stores.create_store` with the configured
            settings.
        signature_algorithm: asn1crypto signature algorithm name.

    The secret is handed to the store and never kept on the session.
    """

    def __init__(
        self,
        store_factory: Callable[[], CredentialStore] | None = None,
        signature_algorithm: str = SIGNATURE_ALGORITHM,
    ) -> None:
        self._store_factory = store_factory or create_store
        self._signature_algorithm = signature_algorithm
        self._digest_algorithm = digest_algorithm_for(signature_algorithm)
        self._store: CredentialStore | None = None
        self._state = StoreState.UNINITIALIZED

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def store(self) -> CredentialStore | None:
        return self._store

    def initialize(self, secret: str | None = None) -> None:
        """
        Build and load a credential store.

        Stores that take no secret are loaded without one, even when
        *secret* is given.

        Raises:
            AuthenticationRequired: State becomes AWAITING_AUTHENTICATION.
            NoCredentialFound, IncorrectSecret: State returns to UNINITIALIZED.
            StoreReadError: State becomes FAILED.
        """
        self.close()

        try:
            store = self._store_factory()
        except StoreSelectionError as exc:
            self._state = StoreState.FAILED
            raise StoreReadError(str(exc)) from exc
        except CardSignError:
            self._state = StoreState.FAILED
            raise

        if store.requires_secret() and not secret:
            store.close()
            self._state = StoreState.AWAITING_AUTHENTICATION
            _logger.debug("%s needs a secret", store.kind.label)
            raise AuthenticationRequired(f"{store.kind.label} requires a PIN or password")

        try:
            store.load(secret if store.requires_secret() else None)
        except AuthenticationRequired:
            store.close()
            self._state = StoreState.AWAITING_AUTHENTICATION
            raise
        except (NoCredentialFound, IncorrectSecret):
            store.close()
            self._state = StoreState.UNINITIALIZED
            raise
        except StoreReadError:
            store.close()
            self._state = StoreState.FAILED
            raise
        except Exception as exc:
            store.close()
            self._state = StoreState.FAILED
            raise StoreReadError(f"Cannot read {store.kind.label}: {exc}") from exc

        self._store = store
        self._state = StoreState.READY
        _logger.debug("%s ready", store.kind.label)

    def _ready_store(self, secret: str | None = None) -> CredentialStore:
        if self._state is not StoreState.READY or self._store is None:
            self.initialize(secret)
        assert self._store is not None
        return self._store

    def list_credentials(self, secret: str | None = None) -> list[CertificateMetadata]:
        """Metadata for every credential in the store, in alias order."""
        store = self._ready_store(secret)
        result: list[CertificateMetadata] = []
        for alias in store.aliases():
            cert = store.certificate(alias)
            if cert is None:
                continue
            result.append(certificate_metadata(cert, alias))
        _logger.debug("Listed %d credential(s)", len(result))
        return result

    def certificate(self, alias: str, secret: str | None = None) -> asn1_x509.Certificate | None:
        return self._ready_store(secret).certificate(alias)

    def chain(self, alias: str, secret: str | None = None) -> list[asn1_x509.Certificate] | None:
        """The credential's chain ordered leaf first, or None for an unknown alias."""
        chain = self._ready_store(secret).chain(alias)
        if chain is None:
            return None
        return order_chain(chain)

    def sign(
        self,
        alias: str,
        document: Document,
        secret: str | None = None,
        signing_time: datetime | None = None,
    ) -> bytes:
        """
        Produce a detached CMS signature of *document* with *alias*.

        Raises:
            SigningFailed: Any failure once the store is ready; the session
                stays READY.
        """
        store = self._ready_store(secret)
        try:
            cert = store.certificate(alias)
            if cert is None:
                raise SigningFailed(f"No certificate for alias '{alias}'")
            key = store.private_key(alias)
            if key is None:
                raise SigningFailed(f"No private key for alias '{alias}'")
            chain = order_chain(store.chain(alias) or [cert])

            attributes = build_signed_attributes(document, self._digest_algorithm, signing_time)
            _logger.debug("Signing %d attribute bytes with '%s'", len(attributes.generated), alias)
            attributes.attach_signature(key.sign(attributes.generated, self._digest_algorithm))
            return build_signed_message(attributes, cert, chain, self._signature_algorithm)
        except SigningFailed:
            raise
        except Exception as exc:
            raise SigningFailed(f"Signing with '{alias}' failed: {exc}") from exc

    def close(self) -> None:
        """Release the store; the session can be initialized again."""
        store, self._store = self._store, None
        if store is not None:
            store.close()
        self._state = StoreState.UNINITIALIZED

    def __enter__(self) -> SigningSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
