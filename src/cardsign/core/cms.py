# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""
Detached CMS/PKCS#7 SignedData assembly.

The flow is split in two so the private key never has to be visible here:
:func:`build_signed_attributes` produces the DER block the key signs, and
:func:`build_signed_message` wraps the attached signature, signer and chain
into a ``ContentInfo``.  The document itself is never embedded.
"""

from __future__ import annotations

__all__ = [
    "SignedAttributes",
    "build_certificate_set",
    "build_signed_attributes",
    "build_signed_message",
    "build_signer_info",
    "digest_algorithm_for",
]

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from asn1crypto import algos, cms, core

from ..constants import DIGEST_ALGORITHM, SIGNATURE_ALGORITHM
from .chain import contains_certificate, is_self_issued, order_chain

if TYPE_CHECKING:
    from collections.abc import Iterable

    from asn1crypto import x509 as asn1_x509

    from .document import Document

_logger = logging.getLogger(__name__)

# Signature algorithm (asn1crypto name) -> digest it implies
_SIGNATURE_DIGESTS: dict[str, str] = {
    "sha1_rsa": "sha1",
    "sha224_rsa": "sha224",
    "sha256_rsa": "sha256",
    "sha384_rsa": "sha384",
    "sha512_rsa": "sha512",
}

# UTCTime cannot represent years from 2050 on (RFC 5280 4.1.2.5)
_UTC_TIME_LAST_YEAR = 2049


def digest_algorithm_for(signature_algorithm: str) -> str:
    """Return the digest algorithm implied by *signature_algorithm*.

    Raises:
        ValueError: The signature algorithm is not supported.
    """
    try:
        return _SIGNATURE_DIGESTS[signature_algorithm]
    except KeyError:
        raise ValueError(f"Unsupported signature algorithm: {signature_algorithm}") from None


class SignedAttributes:
    """
    DER-encoded signed-attribute SET plus the signature over it.

    Instances start in the "generated" state; :meth:`attach_signature`
    moves them to "signed" exactly once.
    """

    __slots__ = ("_encoded", "_digest_algorithm", "_signature")

    def __init__(self, encoded: bytes, digest_algorithm: str) -> None:
        self._encoded = encoded
        self._digest_algorithm = digest_algorithm
        self._signature: bytes | None = None

    @property
    def generated(self) -> bytes:
        """The bytes the private key must sign (universal SET encoding)."""
        return self._encoded

    @property
    def digest_algorithm(self) -> str:
        return self._digest_algorithm

    @property
    def signature(self) -> bytes | None:
        return self._signature

    @property
    def is_signed(self) -> bool:
        return self._signature is not None

    def attach_signature(self, signature: bytes) -> None:
        if self._signature is not None:
            raise ValueError("Signed attributes already carry a signature")
        if not signature:
            raise ValueError("Empty signature")
        self._signature = bytes(signature)

    def to_asn1(self) -> cms.CMSAttributes:
        """Parse the generated bytes back into an asn1crypto structure."""
        return cms.CMSAttributes.load(self._encoded)

    def __repr__(self) -> str:
        state = "signed" if self.is_signed else "generated"
        return f"SignedAttributes({self._digest_algorithm}, {state}, {len(self._encoded)} bytes)"


def _signing_time_value(signing_time: datetime | None) -> cms.Time:
    if signing_time is None:
        signing_time = datetime.now(timezone.utc)
    elif signing_time.tzinfo is None:
        signing_time = signing_time.replace(tzinfo=timezone.utc)
    signing_time = signing_time.astimezone(timezone.utc).replace(microsecond=0)

    if signing_time.year > _UTC_TIME_LAST_YEAR:
        return cms.Time({"generalized_time": core.GeneralizedTime(signing_time)})
    return cms.Time({"utc_time": core.UTCTime(signing_time)})


def build_signed_attributes(
    document: Document,
    digest_algorithm: str = DIGEST_ALGORITHM,
    signing_time: datetime | None = None,
) -> SignedAttributes:
    """
    Build the content-type, signing-time and message-digest attributes.

    Args:
        document: Content being signed (only its digest is used).
        digest_algorithm: hashlib name for the message digest.
        signing_time: Defaults to now; sub-second precision is dropped and
            naive values are taken as UTC.
    """
    message_digest = document.digest(digest_algorithm)
    attrs = cms.CMSAttributes(
        [
            cms.CMSAttribute({"type": "content_type", "values": ["data"]}),
            cms.CMSAttribute({"type": "signing_time", "values": [_signing_time_value(signing_time)]}),
            cms.CMSAttribute({"type": "message_digest", "values": [message_digest]}),
        ]
    )
    encoded = attrs.dump()
    _logger.debug(
        "Signed attributes built: %s digest %s, %d bytes",
        digest_algorithm,
        message_digest.hex(),
        len(encoded),
    )
    return SignedAttributes(encoded, digest_algorithm)


def build_certificate_set(
    signer: asn1_x509.Certificate, chain: Iterable[asn1_x509.Certificate]
) -> list[asn1_x509.Certificate]:
    """
    Select the certificates embedded in the SignedData.

    Self-issued certificates are left out; the signer is always included,
    appended at the end when the chain did not contain it.
    """
    selected: list[asn1_x509.Certificate] = []
    signer_seen = False
    for cert in chain:
        if is_self_issued(cert):
            continue
        if contains_certificate(cert, selected):
            continue
        if cert.dump() == signer.dump():
            signer_seen = True
        selected.append(cert)

    if not signer_seen:
        selected.append(signer)
    return selected


def build_signer_info(
    attributes: SignedAttributes,
    signer: asn1_x509.Certificate,
    signature_algorithm: str = SIGNATURE_ALGORITHM,
) -> cms.SignerInfo:
    """Build a v1 SignerInfo identified by issuer and serial number."""
    if attributes.signature is None:
        raise ValueError("Signed attributes have no signature attached")

    return cms.SignerInfo(
        {
            "version": "v1",
            "sid": cms.SignerIdentifier(
                {
                    "issuer_and_serial_number": cms.IssuerAndSerialNumber(
                        {
                            "issuer": signer.issuer,
                            "serial_number": signer.serial_number,
                        }
                    )
                }
            ),
            "digest_algorithm": algos.DigestAlgorithm({"algorithm": attributes.digest_algorithm}),
            "signed_attrs": attributes.to_asn1(),
            "signature_algorithm": algos.SignedDigestAlgorithm({"algorithm": signature_algorithm}),
            "signature": attributes.signature,
        }
    )


def build_signed_message(
    attributes: SignedAttributes,
    signer: asn1_x509.Certificate,
    chain: Iterable[asn1_x509.Certificate],
    signature_algorithm: str = SIGNATURE_ALGORITHM,
) -> bytes:
    """
    Assemble the detached SignedData and return its DER encoding.

    Raises:
        ValueError: The attributes are unsigned, or their digest algorithm
            does not match the one implied by *signature_algorithm*.
    """
    expected_digest = digest_algorithm_for(signature_algorithm)
    if attributes.digest_algorithm != expected_digest:
        raise ValueError(
            f"Signature algorithm {signature_algorithm} implies {expected_digest}, "
            f"but attributes were built with {attributes.digest_algorithm}"
        )

    signer_info = build_signer_info(attributes, signer, signature_algorithm)
    certificates = build_certificate_set(signer, order_chain(chain))

    signed_data = cms.SignedData(
        {
            "version": "v1",
            "digest_algorithms": cms.DigestAlgorithms(
                [algos.DigestAlgorithm({"algorithm": attributes.digest_algorithm})]
            ),
            "encap_content_info": {"content_type": "data"},
            "certificates": certificates,
            "signer_infos": [signer_info],
        }
    )
    content_info = cms.ContentInfo({"content_type": "signed_data", "content": signed_data})
    encoded = content_info.dump()
    _logger.debug(
        "Detached SignedData assembled: %d certificate(s), %d bytes",
        len(certificates),
        len(encoded),
    )
    return encoded
