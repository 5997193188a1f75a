"""PKCS#12 keystore file backend (``cryptography``)."""

from __future__ import annotations

__all__ = ["Pkcs12Store"]

import logging
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from asn1crypto import pkcs12 as asn1_pkcs12
from asn1crypto import x509 as asn1_x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import Encoding, pkcs12

from ..errors import AuthenticationRequired, IncorrectSecret, SigningFailed, StoreReadError
from .protocol import StoreKind

if TYPE_CHECKING:
    from types import TracebackType

    from cryptography import x509 as crypto_x509

_logger = logging.getLogger(__name__)

# Alias used when the archive carries no friendly name
DEFAULT_ALIAS = "1"

_HASHES: dict[str, type[hashes.HashAlgorithm]] = {
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def _to_asn1(cert: crypto_x509.Certificate) -> asn1_x509.Certificate:
    return asn1_x509.Certificate.load(cert.public_bytes(Encoding.DER))


class _SoftwareKey:
    """RSA key held in memory by ``cryptography``."""

    __slots__ = ("_key",)

    def __init__(self, key: rsa.RSAPrivateKey) -> None:
        self._key = key

    def sign(self, data: bytes, digest_algorithm: str) -> bytes:
        hash_cls = _HASHES.get(digest_algorithm)
        if hash_cls is None:
            raise SigningFailed(f"Unsupported digest algorithm: {digest_algorithm}")
        return self._key.sign(data, padding.PKCS1v15(), hash_cls())


class Pkcs12Store:
    """
    Credential store backed by a PKCS#12 (``.p12``/``.pfx``) archive.

    Holds a single credential: the archive's key and certificate, with the
    remaining certificates forming its chain.
    """

    kind = StoreKind.PKCS12

    def __init__(self, data: bytes | None = None, source: str | None = None) -> None:
        self._data = data
        self._source = source or "<memory>"
        self._alias: str | None = None
        self._leaf: asn1_x509.Certificate | None = None
        self._extra: list[asn1_x509.Certificate] = []
        self._key: _SoftwareKey | None = None

    @classmethod
    def from_file(cls, path: str | Path) -> Pkcs12Store:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise StoreReadError(f"Cannot read keystore {path}: {exc}") from exc
        return cls(data, source=str(path))

    @classmethod
    def from_stream(cls, stream: BinaryIO) -> Pkcs12Store:
        return cls(stream.read(), source=getattr(stream, "name", None))

    def requires_secret(self) -> bool:
        return True

    def load(self, secret: str | None = None) -> None:
        if not self._data:
            raise StoreReadError(f"No keystore data in {self._source}")
        if secret is None:
            raise AuthenticationRequired(f"Password required for {self._source}")

        try:
            pfx = asn1_pkcs12.Pfx.load(self._data)
            _ = pfx["auth_safe"]["content_type"]
        except (ValueError, TypeError) as exc:
            raise StoreReadError(f"{self._source} is not a PKCS#12 archive") from exc

        try:
            bundle = pkcs12.load_pkcs12(self._data, secret.encode("utf-8"))
        except ValueError as exc:
            raise IncorrectSecret(f"Password rejected for {self._source}") from exc

        if bundle.key is None or bundle.cert is None:
            raise StoreReadError(f"{self._source} holds no private key with a certificate")
        if not isinstance(bundle.key, rsa.RSAPrivateKey):
            raise StoreReadError(f"{self._source}: only RSA keys are supported")

        friendly = bundle.cert.friendly_name
        self._alias = friendly.decode("utf-8", "replace") if friendly else DEFAULT_ALIAS
        self._leaf = _to_asn1(bundle.cert.certificate)
        self._extra = [_to_asn1(c.certificate) for c in bundle.additional_certs]
        self._key = _SoftwareKey(bundle.key)
        _logger.debug(
            "Loaded PKCS#12 %s: alias '%s', %d extra certificate(s)",
            self._source,
            self._alias,
            len(self._extra),
        )

    def aliases(self) -> list[str]:
        return [self._alias] if self._alias is not None else []

    def certificate(self, alias: str) -> asn1_x509.Certificate | None:
        if alias != self._alias:
            return None
        return self._leaf

    def chain(self, alias: str) -> list[asn1_x509.Certificate] | None:
        if alias != self._alias or self._leaf is None:
            return None
        return [self._leaf, *self._extra]

    def private_key(self, alias: str) -> _SoftwareKey | None:
        if alias != self._alias:
            return None
        return self._key

    def close(self) -> None:
        self._alias = None
        self._leaf = None
        self._extra = []
        self._key = None

    def __enter__(self) -> Pkcs12Store:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
