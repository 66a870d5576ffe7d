from __future__ import annotations

import os
import zlib
from dataclasses import dataclass
from typing import Callable, Optional

from .constants import COMPRESSION_BZ2, COMPRESSION_GZ
from .errors import ChecksumMismatch, CodecUnavailable, FormatError
from .manifest import Entry, Manifest
from .pathutil import norm_path

try:  # bz2 is optional in some interpreter builds
    import bz2 as _bz2_mod
    _HAS_BZ2 = True
except ImportError:
    _bz2_mod = None
    _HAS_BZ2 = False


@dataclass(frozen=True)
class Codecs:
    """Decompression backends available to one extractor."""

    bzip2: bool
    gzip: bool

    @classmethod
    def detect(cls) -> "Codecs":
        # zlib is imported unconditionally above; gzip=False only comes from an injected Codecs
        return cls(bzip2=_HAS_BZ2 and _bz2_mod is not None, gzip=True)


class Extractor:
    def __init__(self, manifest: Manifest, codecs: Optional[Codecs] = None, verify_crc: bool = False):
        self.manifest = manifest
        self.reader = manifest.reader
        self.codecs = codecs if codecs is not None else Codecs.detect()
        self.verify_crc = verify_crc

    def require_codec(self, entry: Entry) -> None:
        """Raise ``CodecUnavailable`` if ``entry`` needs a backend this extractor lacks."""
        if entry.flags & COMPRESSION_BZ2:
            if not self.codecs.bzip2 or _bz2_mod is None:
                raise CodecUnavailable(
                    f'The "bz2" module is required to decompress "{entry.name}".', name=entry.name
                )
        elif entry.flags & COMPRESSION_GZ:
            if not self.codecs.gzip:
                raise CodecUnavailable(
                    f'The "zlib" module is required to decompress "{entry.name}".', name=entry.name
                )

    def extract(self, entry: Entry) -> bytes:
        """Return the uncompressed contents of ``entry``.

        The bzip2 flag is checked before the gzip flag; gzip payloads are raw
        deflate streams without a gzip header. The stored CRC32 is only
        compared when the extractor was built with ``verify_crc=True``.

        Raises:
            CodecUnavailable: The entry needs a backend this extractor lacks.
            FormatError: The payload could not be decompressed.
        """
        self.require_codec(entry)
        self.reader.seek(entry.data_offset)
        contents = self.reader.read(entry.compressed_size)
        if entry.flags & COMPRESSION_BZ2:
            try:
                contents = _bz2_mod.decompress(contents)
            except (OSError, ValueError, EOFError) as exc:
                raise FormatError(f'Could not decompress "{entry.name}" (bzip2): {exc}') from exc
        elif entry.flags & COMPRESSION_GZ:
            try:
                contents = zlib.decompress(contents, -zlib.MAX_WBITS)
            except zlib.error as exc:
                raise FormatError(f'Could not decompress "{entry.name}" (deflate): {exc}') from exc
        if self.verify_crc and (zlib.crc32(contents) & 0xFFFFFFFF) != entry.crc32:
            raise ChecksumMismatch(f'CRC32 mismatch for "{entry.name}"')
        return contents

    def extract_to(self, directory: str, filter: Optional[Callable[[Entry], bool]] = None) -> int:
        """Write every entry beneath ``directory``.

        Args:
            directory: Destination root; created as needed.
            filter: Called with each entry; a True result skips the entry.

        Returns:
            The number of entries written (files and directories).
        """
        count = 0
        for entry in self.manifest.entries():
            if filter is not None and filter(entry):
                continue
            try:
                rel = norm_path(entry.name)
            except ValueError as exc:
                raise FormatError(f'Refusing to extract unsafe entry name "{entry.name}"') from exc
            if not rel:
                continue
            dst = os.path.join(directory, *rel.split("/"))
            if entry.is_directory():
                os.makedirs(dst, exist_ok=True)
            else:
                os.makedirs(os.path.dirname(dst) or ".", exist_ok=True)
                data = self.extract(entry)
                with open(dst, "wb") as wf:
                    wf.write(data)
            count += 1
        return count
