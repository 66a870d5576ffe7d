from __future__ import annotations

from typing import Optional


class PharError(Exception):
    """Base class for pharkit errors."""


class FileError(PharError):
    """Open/seek/read failure on a backing file."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ):
        super().__init__(message)
        self.path = path
        self.expected = expected
        self.actual = actual


# Layout
class FormatError(PharError):
    pass


class OffsetNotFoundError(FormatError):
    pass


class ChecksumMismatch(FormatError):
    pass


class MetadataError(PharError):
    pass


class CodecUnavailable(PharError):
    """A compression or verification backend is missing at runtime."""

    def __init__(self, message: str, *, name: Optional[str] = None):
        super().__init__(message)
        self.name = name


# Signature
class SignatureError(PharError):
    pass


class NotSignedError(SignatureError):
    pass


class UnsupportedAlgorithmError(SignatureError):
    pass


class VerifierError(SignatureError):
    pass


class PublicKeyNotFound(FileError, SignatureError):
    pass
