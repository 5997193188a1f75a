# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportUnknownArgumentType=false
"""
Certificate attribute extraction for display and listing.

Pulls the signer name, tax identifier (ICP-Brasil CPF) and e-mail out of an
X.509 certificate.  These lookups are OID driven and absence is normal:
every extractor returns ``None`` when the attribute is not present instead
of raising.
"""

from __future__ import annotations

__all__ = [
    "CertificateMetadata",
    "certificate_metadata",
    "chain_display_strings",
    "extract_email",
    "extract_signer_name",
    "extract_tax_id",
    "load_certificate",
    "rfc2253_name",
]

import datetime
import logging
from dataclasses import dataclass, field

from asn1crypto import x509 as asn1_x509

from ..constants import OID_TAX_ID, TAX_ID_END, TAX_ID_START
from ..errors import CertificateError

_logger = logging.getLogger(__name__)

_OID_CN = "2.5.4.3"

# Attribute labels used in the RFC 2253 string form
_RDN_LABELS = {
    "2.5.4.3": "CN",
    "2.5.4.6": "C",
    "2.5.4.7": "L",
    "2.5.4.8": "ST",
    "2.5.4.9": "STREET",
    "2.5.4.10": "O",
    "2.5.4.11": "OU",
    "0.9.2342.19200300.100.1.25": "DC",
    "0.9.2342.19200300.100.1.1": "UID",
}


@dataclass(frozen=True)
class CertificateMetadata:
    """Display data extracted from a signer certificate.

    Attributes:
        alias: Store alias the certificate was found under.
        principal: Subject name in RFC 2253 form.
        signer_name: Common name without the colon-delimited suffix.
        tax_id: CPF from the subject alternative name, if present.
        email: First rfc822 name from the subject alternative name, if present.
        not_before: Start of the validity window.
        not_after: End of the validity window.
        chain: Subject RDNs as display strings, most specific first.
    """

    alias: str
    principal: str
    signer_name: str | None
    tax_id: str | None
    email: str | None
    not_before: datetime.datetime
    not_after: datetime.datetime
    chain: list[str] = field(default_factory=list)


def load_certificate(cert_der: bytes) -> asn1_x509.Certificate:
    """
    Parse a DER-encoded X.509 certificate.

    Raises:
        CertificateError if the bytes are not a certificate.
    """
    try:
        cert = asn1_x509.Certificate.load(cert_der)
        # asn1crypto parses lazily; touch the fields we rely on
        _ = (cert.subject, cert.issuer, cert.serial_number)
    except (ValueError, TypeError, KeyError, OSError) as e:
        raise CertificateError(f"Failed to parse X.509 certificate: {e}") from e
    return cert


def _escape_rdn_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace(",", "\\,").replace("+", "\\+")


def rfc2253_name(name: asn1_x509.Name) -> str:
    """Render a name in RFC 2253 order (most specific RDN first)."""
    parts = []
    for rdn in reversed(list(name.chosen)):
        values = []
        for attr in rdn:
            oid = attr["type"].dotted
            label = _RDN_LABELS.get(oid, oid)
            values.append(f"{label}={_escape_rdn_value(str(attr['value'].native))}")
        parts.append("+".join(values))
    return ",".join(parts)


def extract_signer_name(cert: asn1_x509.Certificate) -> str | None:
    """Return the subject CN, cut at the first colon.

    Some issuer profiles append the tax id to the CN as ``NAME:CPF``.
    Returns None when the subject has no CN.
    """
    for rdn in cert.subject.chosen:
        for attr in rdn:
            if attr["type"].dotted == _OID_CN:
                value = str(attr["value"].native)
                index = value.find(":")
                return value[:index] if index > 0 else value
    return None


def _subject_alt_names(cert: asn1_x509.Certificate) -> list[asn1_x509.GeneralName]:
    san = cert.subject_alt_name_value
    if san is None:
        _logger.debug("No subjectAltName in certificate '%s'", cert.subject.human_friendly)
        return []
    return list(san)


def _other_name_value(cert: asn1_x509.Certificate, oid: str) -> str | None:
    """Decode the subjectAltName other-name with the given type OID."""
    for general_name in _subject_alt_names(cert):
        if general_name.name != "other_name":
            continue
        other = general_name.chosen
        if other["type_id"].dotted != oid:
            continue
        inner = other["value"].parsed.native
        if isinstance(inner, bytes):
            return inner.decode("latin-1")
        if isinstance(inner, str):
            return inner
        _logger.debug("Unexpected other-name value type for %s: %r", oid, type(inner))
        return None
    return None


def extract_tax_id(cert: asn1_x509.Certificate) -> str | None:
    """Return the CPF held in the ICP-Brasil other-name, or None.

    The other-name value starts with the holder's birth date (8 digits),
    followed by the 11-digit CPF.
    """
    try:
        value = _other_name_value(cert, OID_TAX_ID)
    except (ValueError, TypeError, KeyError) as e:
        _logger.debug("Cannot decode tax id other-name: %s", e)
        return None
    if value is None or len(value) < TAX_ID_END:
        return None
    return value[TAX_ID_START:TAX_ID_END]


def extract_email(cert: asn1_x509.Certificate) -> str | None:
    """Return the first rfc822 name of the subjectAltName, or None."""
    try:
        for general_name in _subject_alt_names(cert):
            if general_name.name == "rfc822_name":
                return str(general_name.native)
    except (ValueError, TypeError, KeyError) as e:
        _logger.debug("Cannot decode subjectAltName: %s", e)
    return None


def chain_display_strings(cert: asn1_x509.Certificate) -> list[str]:
    """Split the subject string form on commas for display."""
    return [part.strip() for part in rfc2253_name(cert.subject).split(",")]


def certificate_metadata(cert: asn1_x509.Certificate, alias: str) -> CertificateMetadata:
    """Build the listing record for one certificate.

    Also logs warnings for expired or not-yet-valid certificates.
    """
    not_before = cert.not_valid_before
    not_after = cert.not_valid_after
    now = datetime.datetime.now(datetime.timezone.utc)
    if now < not_before:
        _logger.warning("Certificate '%s' is not yet valid (notBefore: %s)", alias, not_before)
    elif now > not_after:
        _logger.warning("Certificate '%s' has expired (notAfter: %s)", alias, not_after)

    return CertificateMetadata(
        alias=alias,
        principal=rfc2253_name(cert.subject),
        signer_name=extract_signer_name(cert),
        tax_id=extract_tax_id(cert),
        email=extract_email(cert),
        not_before=not_before,
        not_after=not_after,
        chain=chain_display_strings(cert),
    )
