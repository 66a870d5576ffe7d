from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Union

from . import openssl
from .constants import (
    HASH_CHUNK_SIZE,
    SIG_MD5,
    SIG_OPENSSL,
    SIG_SHA1,
    SIG_SHA256,
    SIG_SHA512,
    SIGNATURE_MAGIC,
)
from .errors import FileError, NotSignedError, PublicKeyNotFound, UnsupportedAlgorithmError
from .fileio import FileReader


# Footer: [... content][signature][u32 flag]["GBMB"]
_FOOTER_SIZE = 8
# OpenSSL footer adds the signature length: [signature][u32 length][u32 flag]["GBMB"]
_OPENSSL_FOOTER_SIZE = 12

STATE_UNRESOLVED = "unresolved"
STATE_SELECTED = "selected"
STATE_VERIFIED = "verified"
STATE_REJECTED = "rejected"


@dataclass(frozen=True)
class SignatureInfo:
    digest_hex: str
    algorithm_name: str


@dataclass(frozen=True)
class HashAlgorithm:
    flag: int
    name: str
    digest_size: int
    factory: Callable[[], Any]

    def locate(self, reader: FileReader) -> Tuple[int, int]:
        """Return (signature offset, signature length); content is [0, offset)."""
        start = reader.size() - _FOOTER_SIZE - self.digest_size
        if start < 0:
            raise FileError(f'The file "{reader.path}" is too small to hold a {self.name} signature.', path=reader.path)
        return start, self.digest_size

    def verify(self, reader: FileReader) -> bool:
        start, length = self.locate(reader)
        reader.seek(start)
        expected = reader.read(length)
        h = self.factory()
        for chunk in reader.iter_range(0, start, HASH_CHUNK_SIZE):
            h.update(chunk)
        return hmac.compare_digest(h.digest(), expected)


@dataclass(frozen=True)
class AsymmetricAlgorithm:
    flag: int
    name: str
    key_loader: Callable[[str], bytes]
    verifier: Callable[[bytes, bytes, bytes], bool]

    def locate(self, reader: FileReader) -> Tuple[int, int]:
        reader.seek(-_OPENSSL_FOOTER_SIZE, os.SEEK_END)
        length = reader.read_long()
        start = reader.size() - _OPENSSL_FOOTER_SIZE - length
        if start < 0:
            raise FileError(
                f'The signature length {length} exceeds the size of "{reader.path}".', path=reader.path
            )
        return start, length

    def verify(self, reader: FileReader) -> bool:
        start, length = self.locate(reader)
        reader.seek(start)
        signature = reader.read(length)
        key = self.key_loader(reader.path)
        reader.seek(0)
        data = reader.read(start)
        return self.verifier(data, signature, key)


Algorithm = Union[HashAlgorithm, AsymmetricAlgorithm]


def load_public_key(archive_path: str) -> bytes:
    """Read the key stored beside the archive as ``<archive>.pubkey``."""
    path = archive_path + ".pubkey"
    if not os.path.isfile(path):
        raise PublicKeyNotFound(f'The path "{path}" is not a file or does not exist.', path=path)
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as exc:
        raise FileError(f'Could not read "{path}": {exc}', path=path) from exc


MD5 = HashAlgorithm(SIG_MD5, "MD5", 16, hashlib.md5)
SHA1 = HashAlgorithm(SIG_SHA1, "SHA-1", 20, hashlib.sha1)
SHA256 = HashAlgorithm(SIG_SHA256, "SHA-256", 32, hashlib.sha256)
SHA512 = HashAlgorithm(SIG_SHA512, "SHA-512", 64, hashlib.sha512)
OPENSSL = AsymmetricAlgorithm(SIG_OPENSSL, "OpenSSL", load_public_key, openssl.verify)

DEFAULT_ALGORITHMS = (MD5, SHA1, SHA256, SHA512, OPENSSL)


class Signature:
    """Reads and verifies the signature footer of an archive.

    The algorithm is resolved from the footer flag the first time it is
    needed and kept for the life of the instance. ``state`` moves from
    ``unresolved`` to ``selected`` and then to ``verified`` or ``rejected``
    after ``is_valid()``.
    """

    def __init__(self, reader: FileReader, algorithms: Optional[Iterable[Algorithm]] = None):
        self.reader = reader
        self.algorithms: Dict[int, Algorithm] = {}
        self._algorithm: Optional[Algorithm] = None
        self.state = STATE_UNRESOLVED
        for alg in algorithms or ():
            self.add_algorithm(alg)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.reader.close()

    @classmethod
    def create(cls, file: Union[str, FileReader]) -> "Signature":
        if not isinstance(file, FileReader):
            file = FileReader(file)
        return cls(file, DEFAULT_ALGORITHMS)

    def add_algorithm(self, algorithm: Algorithm) -> None:
        self.algorithms[algorithm.flag] = algorithm

    def algorithm(self) -> Algorithm:
        if self._algorithm is None:
            if self.reader.size() < _FOOTER_SIZE:
                raise NotSignedError(f'The archive "{self.reader.path}" is not signed.')
            self.reader.seek(-4, os.SEEK_END)
            if self.reader.read(4) != SIGNATURE_MAGIC:
                raise NotSignedError(f'The archive "{self.reader.path}" is not signed.')
            self.reader.seek(-_FOOTER_SIZE, os.SEEK_END)
            flag = self.reader.read_long()
            alg = self.algorithms.get(flag)
            if alg is None:
                raise UnsupportedAlgorithmError(
                    f'The algorithm for the archive "{self.reader.path}" is not supported.'
                )
            self._algorithm = alg
            self.state = STATE_SELECTED
        return self._algorithm

    def signature(self) -> SignatureInfo:
        alg = self.algorithm()
        start, length = alg.locate(self.reader)
        self.reader.seek(start)
        raw = self.reader.read(length)
        return SignatureInfo(digest_hex=raw.hex().upper(), algorithm_name=alg.name)

    def is_valid(self) -> bool:
        ok = self.algorithm().verify(self.reader)
        self.state = STATE_VERIFIED if ok else STATE_REJECTED
        return ok

    def matches(self, digest_hex: str) -> bool:
        """Compare a hex digest with the stored one, ignoring case.

        Input that is not hex never matches.
        """
        try:
            candidate = bytes.fromhex(digest_hex)
        except ValueError:
            return False
        return hmac.compare_digest(bytes.fromhex(self.signature().digest_hex), candidate)
