from __future__ import annotations

from typing import Callable, List, Optional

from .extract import Codecs, Extractor
from .fileio import FileReader
from .manifest import Deserializer, Entry, Manifest
from .signature import Signature


class ArchiveReader:
    """Read-only view of an archive file.

    Owns one ``FileReader`` for the manifest and payloads. Signature checks
    run over a second reader so they never move the manifest cursor.
    """

    def __init__(
        self,
        path: str,
        offset: Optional[int] = None,
        deserializer: Optional[Deserializer] = None,
        codecs: Optional[Codecs] = None,
        verify_crc: bool = False,
    ):
        self.path = path
        self.offset = offset
        self.deserializer = deserializer
        self.codecs = codecs
        self.verify_crc = verify_crc
        self.reader: Optional[FileReader] = None
        self.manifest: Optional[Manifest] = None
        self.extractor: Optional[Extractor] = None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.reader is not None:
            return
        self.reader = FileReader(self.path)
        try:
            self.manifest = Manifest(self.reader, self.offset, deserializer=self.deserializer)
            self.extractor = Extractor(self.manifest, codecs=self.codecs, verify_crc=self.verify_crc)
        except BaseException:
            self.close()
            raise

    def close(self):
        if self.reader is not None:
            self.reader.close()
            self.reader = None
        self.manifest = None
        self.extractor = None

    def _require_open(self) -> Extractor:
        if self.extractor is None:
            raise RuntimeError("Archive not open")
        return self.extractor

    def list(self) -> List[Entry]:
        return self._require_open().manifest.entries()

    def extract(self, entry: Entry) -> bytes:
        return self._require_open().extract(entry)

    def extract_to(self, directory: str, filter: Optional[Callable[[Entry], bool]] = None) -> int:
        return self._require_open().extract_to(directory, filter=filter)

    def signature(self) -> Signature:
        """Return a verifier over its own reader; close it or use it as a context manager."""
        return Signature.create(self.path)

    def verify(self) -> bool:
        with self.signature() as sig:
            return sig.is_valid()
