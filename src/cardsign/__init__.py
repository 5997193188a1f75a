"""
cardsign: detached CMS/PKCS#7 signatures from smart cards and keystores.

Signs arbitrary documents with credentials held on a PKCS#11 token, in the
Windows certificate store or in a PKCS#12 file.
"""

from __future__ import annotations

from .constants import __version__
from .core.cert_info import CertificateMetadata, certificate_metadata
from .core.chain import order_chain
from .core.cms import build_signed_attributes, build_signed_message
from .core.document import Document
from .core.signing import SigningSession, StoreState
from .core.verify import verify_detached
from .errors import (
    AuthenticationRequired,
    CardSignError,
    CertificateError,
    ConfigError,
    FailureKind,
    IncorrectSecret,
    NoCredentialFound,
    SigningFailed,
    StoreReadError,
    StoreSelectionError,
)
from .stores import StoreKind, create_store, select_store_kind

__all__ = [
    "AuthenticationRequired",
    "CardSignError",
    "CertificateError",
    "CertificateMetadata",
    "ConfigError",
    "Document",
    "FailureKind",
    "IncorrectSecret",
    "NoCredentialFound",
    "SigningFailed",
    "SigningSession",
    "StoreKind",
    "StoreReadError",
    "StoreSelectionError",
    "StoreState",
    "__version__",
    "build_signed_attributes",
    "build_signed_message",
    "certificate_metadata",
    "create_store",
    "order_chain",
    "select_store_kind",
    "verify_detached",
]
