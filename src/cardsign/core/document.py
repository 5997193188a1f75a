"""Document to be signed: immutable bytes plus cached content digests."""

from __future__ import annotations

__all__ = ["Document"]

import hashlib
from pathlib import Path
from typing import BinaryIO


class Document:
    """Immutable byte content of a document.

    Digests are computed lazily and cached per hashlib algorithm name.
    Use :meth:`from_bytes`, :meth:`from_file` or :meth:`from_stream`.
    """

    __slots__ = ("_data", "_digests")

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._digests: dict[str, bytes] = {}

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> Document:
        return cls(bytes(data))

    @classmethod
    def from_file(cls, path: str | Path) -> Document:
        return cls(Path(path).read_bytes())

    @classmethod
    def from_stream(cls, stream: BinaryIO) -> Document:
        return cls(stream.read())

    @property
    def data(self) -> bytes:
        return self._data

    def digest(self, algorithm: str) -> bytes:
        """Return the digest of the content for a hashlib algorithm name.

        Raises:
            ValueError: If the algorithm is not available.
        """
        name = algorithm.lower().replace("-", "")
        cached = self._digests.get(name)
        if cached is None:
            cached = hashlib.new(name, self._data).digest()
            self._digests[name] = cached
        return cached

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Document({len(self._data)} bytes)"
