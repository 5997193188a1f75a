"""Shared test fixtures for the cardsign test suite.

Builds a throwaway RSA PKI (root -> intermediate -> leaf) with
``cryptography``; the leaf carries an ICP-Brasil style subject alternative
name with a tax id and an e-mail address.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any

import pytest
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, Encoding, pkcs12
from cryptography.x509.oid import NameOID, ObjectIdentifier

from cardsign.stores.protocol import StoreKind

TAX_ID = "12345678901"
# 8 digit birth date, CPF, then the remaining ICP-Brasil fields
TAX_ID_VALUE = "01011980" + TAX_ID + "00000000000" + "000000000000000" + "SSPSP"
EMAIL = "maria@example.com"
LEAF_CN = "MARIA DA SILVA:" + TAX_ID
PKCS12_PASSWORD = "s3cret"
PKCS12_ALIAS = "maria"

_NOW = datetime.datetime.now(datetime.timezone.utc)


def _name(common_name: str | None, org: str = "Test PKI") -> x509.Name:
    attrs = [
        x509.NameAttribute(NameOID.COUNTRY_NAME, "BR"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, org),
    ]
    if common_name is not None:
        attrs.append(x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    return x509.Name(attrs)


def _octet_string(value: bytes) -> bytes:
    assert len(value) < 128
    return b"\x04" + bytes([len(value)]) + value


def new_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def issue_certificate(
    subject: x509.Name,
    subject_key: rsa.RSAPrivateKey,
    issuer: x509.Name,
    issuer_key: rsa.RSAPrivateKey,
    *,
    ca: bool,
    san: list[x509.GeneralName] | None = None,
    not_before: datetime.datetime | None = None,
    not_after: datetime.datetime | None = None,
) -> x509.Certificate:
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or _NOW - datetime.timedelta(days=1))
        .not_valid_after(not_after or _NOW + datetime.timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if san:
        builder = builder.add_extension(x509.SubjectAlternativeName(san), critical=False)
    return builder.sign(issuer_key, hashes.SHA256())


def to_asn1(cert: x509.Certificate) -> asn1_x509.Certificate:
    return asn1_x509.Certificate.load(cert.public_bytes(Encoding.DER))


def icp_san(tax_value: str = TAX_ID_VALUE, email: str | None = EMAIL) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = [
        x509.OtherName(ObjectIdentifier("2.16.76.1.3.1"), _octet_string(tax_value.encode("ascii")))
    ]
    if email is not None:
        names.append(x509.RFC822Name(email))
    return names


@dataclass
class Pki:
    root_key: rsa.RSAPrivateKey
    intermediate_key: rsa.RSAPrivateKey
    leaf_key: rsa.RSAPrivateKey
    root_crypto: x509.Certificate
    intermediate_crypto: x509.Certificate
    leaf_crypto: x509.Certificate
    root: asn1_x509.Certificate = field(init=False)
    intermediate: asn1_x509.Certificate = field(init=False)
    leaf: asn1_x509.Certificate = field(init=False)

    def __post_init__(self) -> None:
        self.root = to_asn1(self.root_crypto)
        self.intermediate = to_asn1(self.intermediate_crypto)
        self.leaf = to_asn1(self.leaf_crypto)

    @property
    def chain(self) -> list[asn1_x509.Certificate]:
        return [self.leaf, self.intermediate, self.root]

    def issue_leaf(self, common_name: str | None, **kwargs: Any) -> asn1_x509.Certificate:
        """Issue another end-entity certificate under the intermediate."""
        cert = issue_certificate(
            _name(common_name),
            new_key(),
            self.intermediate_crypto.subject,
            self.intermediate_key,
            ca=False,
            **kwargs,
        )
        return to_asn1(cert)


@pytest.fixture(scope="session")
def pki() -> Pki:
    root_key, intermediate_key, leaf_key = new_key(), new_key(), new_key()
    root_name = _name("Test Root CA")
    intermediate_name = _name("Test Intermediate CA")

    root = issue_certificate(root_name, root_key, root_name, root_key, ca=True)
    intermediate = issue_certificate(
        intermediate_name, intermediate_key, root_name, root_key, ca=True
    )
    leaf = issue_certificate(
        _name(LEAF_CN), leaf_key, intermediate_name, intermediate_key, ca=False, san=icp_san()
    )
    return Pki(root_key, intermediate_key, leaf_key, root, intermediate, leaf)


@pytest.fixture(scope="session")
def pkcs12_bytes(pki: Pki) -> bytes:
    return pkcs12.serialize_key_and_certificates(
        PKCS12_ALIAS.encode(),
        pki.leaf_key,
        pki.leaf_crypto,
        [pki.intermediate_crypto, pki.root_crypto],
        BestAvailableEncryption(PKCS12_PASSWORD.encode()),
    )


# ── In-memory credential store ────────────────────────────────────


class FakeKey:
    def __init__(self, key: rsa.RSAPrivateKey) -> None:
        self._key = key
        self.calls: list[tuple[bytes, str]] = []

    def sign(self, data: bytes, digest_algorithm: str) -> bytes:
        self.calls.append((data, digest_algorithm))
        return self._key.sign(data, padding.PKCS1v15(), hashes.SHA1())


class FakeStore:
    """CredentialStore double that can be told to fail on load."""

    kind = StoreKind.PKCS11

    def __init__(
        self,
        entries: dict[str, tuple[asn1_x509.Certificate, list[asn1_x509.Certificate], FakeKey]],
        *,
        needs_secret: bool = True,
        pin: str = "1234",
        load_error: Exception | None = None,
    ) -> None:
        self._entries = entries
        self._needs_secret = needs_secret
        self._pin = pin
        self.load_error = load_error
        self.load_secret: str | None = None
        self.loaded = False
        self.closed = False

    def requires_secret(self) -> bool:
        return self._needs_secret

    def load(self, secret: str | None = None) -> None:
        from cardsign.errors import IncorrectSecret

        self.load_secret = secret
        if self.load_error is not None:
            raise self.load_error
        if self._needs_secret and secret != self._pin:
            raise IncorrectSecret("CKR_PIN_INCORRECT")
        self.loaded = True

    def aliases(self) -> list[str]:
        return list(self._entries) if self.loaded else []

    def certificate(self, alias: str) -> asn1_x509.Certificate | None:
        entry = self._entries.get(alias)
        return entry[0] if entry else None

    def chain(self, alias: str) -> list[asn1_x509.Certificate] | None:
        entry = self._entries.get(alias)
        return list(entry[1]) if entry else None

    def private_key(self, alias: str) -> FakeKey | None:
        entry = self._entries.get(alias)
        return entry[2] if entry else None

    def close(self) -> None:
        self.closed = True
        self.loaded = False

    def __enter__(self) -> FakeStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@pytest.fixture
def fake_store_factory(pki: Pki):
    """Return (factory, created) where *created* collects every store built."""
    created: list[FakeStore] = []

    def make(**kwargs: Any) -> FakeStore:
        # Unordered chain on purpose; the session must order it
        entries = {
            "maria": (
                pki.leaf,
                [pki.root, pki.leaf, pki.intermediate],
                FakeKey(pki.leaf_key),
            )
        }
        store = FakeStore(entries, **kwargs)
        created.append(store)
        return store

    return make, created
