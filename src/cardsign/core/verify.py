# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""
Self-check of detached CMS signatures.

Recomputes the document digest, compares it with the messageDigest signed
attribute and verifies the RSA signature over the signed attributes with
the signer's public key.  No trust-path validation or revocation checking
is attempted.
"""

from __future__ import annotations

__all__ = [
    "SignatureDescription",
    "VerificationResult",
    "describe_signature",
    "verify_detached",
]

import logging
from typing import TypedDict

from asn1crypto import cms as asn1_cms
from asn1crypto import core
from asn1crypto import x509 as asn1_x509
from cryptography import x509 as crypto_x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..errors import CertificateError
from .cert_info import extract_email, extract_signer_name, extract_tax_id, rfc2253_name
from .document import Document

_logger = logging.getLogger(__name__)

_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


class VerificationResult(TypedDict):
    """Result of verifying a detached signature against its document."""

    valid: bool  # digest_ok and signature_ok
    digest_ok: bool  # messageDigest matches the document
    signature_ok: bool  # RSA signature over the signed attributes holds
    details: list[str]  # Human-readable messages
    signer: dict[str, str | None] | None  # name, tax_id, email, dn


class SignatureDescription(TypedDict):
    """Contents of a CMS blob, inspected without the document."""

    signer: dict[str, str | None] | None
    digest_algorithm: str | None
    signing_time: str | None
    certificates: list[str]
    details: list[str]


def _load_signed_data(cms_der: bytes) -> asn1_cms.SignedData:
    try:
        content_info = asn1_cms.ContentInfo.load(cms_der)
        if content_info["content_type"].native != "signed_data":
            raise CertificateError(
                f"Not a SignedData structure ({content_info['content_type'].native})"
            )
        signed_data = content_info["content"]
        signer_count = len(signed_data["signer_infos"])
    except (ValueError, TypeError, KeyError) as e:
        raise CertificateError(f"Cannot parse CMS signature: {e}") from e
    if not signer_count:
        raise CertificateError("CMS signature has no SignerInfo")
    return signed_data


def _first_signer_info(signed_data: asn1_cms.SignedData) -> asn1_cms.SignerInfo:
    return signed_data["signer_infos"][0]


def _embedded_certificates(signed_data: asn1_cms.SignedData) -> list[asn1_x509.Certificate]:
    certificates = signed_data["certificates"]
    if isinstance(certificates, core.Void):
        return []
    return [choice.chosen for choice in certificates if choice.name == "certificate"]


def _find_signer(
    signed_data: asn1_cms.SignedData, signer_info: asn1_cms.SignerInfo
) -> asn1_x509.Certificate | None:
    sid = signer_info["sid"]
    if sid.name != "issuer_and_serial_number":
        return None
    issuer = sid.chosen["issuer"]
    serial = sid.chosen["serial_number"].native
    for cert in _embedded_certificates(signed_data):
        if cert.issuer == issuer and cert.serial_number == serial:
            return cert
    return None


def _signer_dict(cert: asn1_x509.Certificate) -> dict[str, str | None]:
    return {
        "name": extract_signer_name(cert),
        "tax_id": extract_tax_id(cert),
        "email": extract_email(cert),
        "dn": rfc2253_name(cert.subject),
    }


def _message_digest(signer_info: asn1_cms.SignerInfo) -> bytes | None:
    signed_attrs = signer_info["signed_attrs"]
    for attr in signed_attrs:
        if attr["type"].native == "message_digest":
            return attr["values"][0].native
    return None


def _signing_time(signer_info: asn1_cms.SignerInfo) -> str | None:
    for attr in signer_info["signed_attrs"]:
        if attr["type"].native == "signing_time":
            return attr["values"][0].native.isoformat()
    return None


def verify_detached(cms_der: bytes, document: Document | bytes) -> VerificationResult:
    """
    Verify a detached CMS signature over *document*.

    Never raises for a bad signature; problems are reported in the result.
    """
    if isinstance(document, bytes):
        document = Document.from_bytes(document)

    failed: VerificationResult = {
        "valid": False,
        "digest_ok": False,
        "signature_ok": False,
        "details": [],
        "signer": None,
    }

    try:
        signed_data = _load_signed_data(cms_der)
        signer_info = _first_signer_info(signed_data)
    except CertificateError as e:
        failed["details"].append(f"Structure error: {e}")
        return failed

    details: list[str] = [f"CMS blob: {len(cms_der)} bytes"]
    if signed_data["encap_content_info"]["content"].native is not None:
        details.append("Warning: signature encapsulates content (not detached)")

    cert = _find_signer(signed_data, signer_info)
    if cert is None:
        details.append("Signer certificate not found in CMS")
        failed["details"] = details
        return failed
    signer = _signer_dict(cert)
    if signer["name"]:
        details.append(f"Signer: {signer['name']}")

    # ── Digest ──────────────────────────────────────────────────
    algo_name = signer_info["digest_algorithm"]["algorithm"].native
    hash_cls = _HASHES.get(algo_name)
    if hash_cls is None:
        details.append(f"Unsupported digest algorithm: {algo_name}")
        failed["details"] = details
        failed["signer"] = signer
        return failed

    digest_ok = False
    cms_digest = _message_digest(signer_info)
    actual = document.digest(algo_name)
    algo_upper = algo_name.upper()
    if cms_digest is None:
        details.append("No messageDigest signed attribute")
    elif actual == cms_digest:
        digest_ok = True
        details.append(f"Digest OK -- {algo_upper} matches messageDigest: {actual.hex()}")
    else:
        details.append(
            f"Digest MISMATCH!\n"
            f"  Document {algo_upper}: {actual.hex()}\n"
            f"  messageDigest:   {cms_digest.hex()}"
        )

    # ── Signature ───────────────────────────────────────────────
    signature_ok = False
    public_key = crypto_x509.load_der_x509_certificate(cert.dump()).public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        details.append("Signer key is not RSA")
    else:
        signed_bytes = signer_info["signed_attrs"].untag().dump()
        try:
            public_key.verify(
                signer_info["signature"].native, signed_bytes, padding.PKCS1v15(), hash_cls()
            )
            signature_ok = True
            details.append("Signature OK")
        except InvalidSignature:
            details.append("Signature INVALID")

    return {
        "valid": digest_ok and signature_ok,
        "digest_ok": digest_ok,
        "signature_ok": signature_ok,
        "details": details,
        "signer": signer,
    }


def describe_signature(cms_der: bytes) -> SignatureDescription:
    """Inspect a CMS blob without the signed document.

    Raises:
        CertificateError: The blob is not a parseable SignedData.
    """
    signed_data = _load_signed_data(cms_der)
    signer_info = _first_signer_info(signed_data)
    cert = _find_signer(signed_data, signer_info)

    certificates = [rfc2253_name(c.subject) for c in _embedded_certificates(signed_data)]
    algo = signer_info["digest_algorithm"]["algorithm"].native
    signing_time = _signing_time(signer_info)

    details = [f"CMS blob: {len(cms_der)} bytes", f"Digest algorithm: {algo.upper()}"]
    if signing_time:
        details.append(f"Signing time: {signing_time}")
    details.append(f"Certificates: {len(certificates)}")

    return {
        "signer": _signer_dict(cert) if cert is not None else None,
        "digest_algorithm": algo,
        "signing_time": signing_time,
        "certificates": certificates,
        "details": details,
    }
