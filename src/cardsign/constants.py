"""
Application-wide constants for cardsign.

Algorithm names, object identifiers, default token settings and
environment variable names are centralized here.
"""

from __future__ import annotations

import importlib.metadata

try:
    __version__ = importlib.metadata.version("cardsign")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.3.0"

__all__ = [
    "DEFAULT_PKCS11_LIBRARIES",
    "DEFAULT_PKCS11_SLOT",
    "DIGEST_ALGORITHM",
    "ENV_BACKEND",
    "ENV_PIN",
    "ENV_PKCS11_LIB",
    "ENV_PKCS11_SLOT",
    "MAX_SECRET_ATTEMPTS",
    "OID_TAX_ID",
    "SIGNATURE_ALGORITHM",
    "SIGNATURE_SUFFIX",
    "TAX_ID_END",
    "TAX_ID_START",
    "__version__",
]

# ── Signature suite ──────────────────────────────────────────────────

# asn1crypto names; the digest must match the one implied by the signature
# algorithm (see cardsign.core.cms.digest_algorithm_for).
# TODO: negotiate a SHA-2 suite with the token instead of hard-coding SHA-1.
SIGNATURE_ALGORITHM = "sha1_rsa"
DIGEST_ALGORITHM = "sha1"


# ── Certificate attributes ───────────────────────────────────────────

# ICP-Brasil "pessoa fisica" other-name carrying birth date + CPF
OID_TAX_ID = "2.16.76.1.3.1"

# CPF position inside the other-name value (8 digits of birth date first)
TAX_ID_START = 8
TAX_ID_END = 19


# ── Hardware token defaults ──────────────────────────────────────────

# Keyed by sys.platform prefix
DEFAULT_PKCS11_LIBRARIES = {
    "linux": "/usr/lib/libeToken.so.10",
    "darwin": "/usr/local/lib/opensc-pkcs11.so",
    "win32": "C:\\Windows\\System32\\opensc-pkcs11.dll",
}

DEFAULT_PKCS11_SLOT = 0


# ── CLI ──────────────────────────────────────────────────────────────

# PIN prompts before giving up
MAX_SECRET_ATTEMPTS = 3

# Detached signature file suffix
SIGNATURE_SUFFIX = ".p7s"


# ── Environment variable names ───────────────────────────────────────

ENV_BACKEND = "CARDSIGN_BACKEND"
ENV_PKCS11_LIB = "CARDSIGN_PKCS11_LIB"
ENV_PKCS11_SLOT = "CARDSIGN_PKCS11_SLOT"
ENV_PIN = "CARDSIGN_PIN"
