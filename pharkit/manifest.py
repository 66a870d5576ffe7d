from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional

from .constants import (
    ALIAS_OFFSET,
    ALIAS_SIZE_OFFSET,
    API_VERSION_OFFSET,
    COMPRESSION_MASK,
    ENTRY_COUNT_OFFSET,
    GLOBAL_FLAGS_OFFSET,
    MANIFEST_SIZE_OFFSET,
)
from .errors import MetadataError, OffsetNotFoundError
from .fileio import FileReader
from .locator import find_offset
from .pathutil import canonical_name


Deserializer = Callable[[bytes], Any]

# Per-entry fixed fields following the name:
#  - uncompressed size u32
#  - timestamp u32
#  - compressed size u32
#  - crc32 u32
#  - flags u32
#  - metadata size u32
_ENTRY_FIXED = struct.Struct("<IIIIII")


def _raw(data: bytes) -> bytes:
    return data


@dataclass(frozen=True)
class Entry:
    name: str
    name_size: int
    uncompressed_size: int
    timestamp: int
    compressed_size: int
    crc32: int
    flags: int
    metadata_size: int
    metadata: Optional[bytes]
    data_offset: int

    @property
    def size(self) -> int:
        return self.uncompressed_size

    def is_directory(self) -> bool:
        return self.name.endswith("/")

    def is_compressed(self, flag: int) -> bool:
        return (self.flags & flag) > 0

    def has_metadata(self) -> bool:
        return self.metadata_size > 0


class Manifest:
    """Decodes the manifest of an archive.

    Header accessors seek the reader and decode the field on every call;
    nothing is cached, so the same reader can be repositioned freely between
    calls. Entry records are produced by one sequential pass.

    Layout relative to ``offset`` (all integers u32 little-endian):

    - +0 manifest size (everything after this field, header and records)
    - +4 entry count
    - +8 API version (2 bytes)
    - +10 global flags
    - +14 alias size, +18 alias
    - alias end: global metadata size, then metadata
    - entry records, then entry payloads at ``offset + manifest size + 4``
    """

    def __init__(self, reader: FileReader, offset: Optional[int] = None, deserializer: Optional[Deserializer] = None):
        if offset is None:
            offset = find_offset(reader)
            if offset is None:
                raise OffsetNotFoundError(
                    f'The manifest offset could not be found in the PHP archive file "{reader.path}".'
                )
        self.offset = offset
        self.reader = reader
        self.deserializer: Deserializer = deserializer or _raw

    def size(self) -> int:
        self.reader.seek(self.offset + MANIFEST_SIZE_OFFSET)
        return self.reader.read_long()

    def entry_count(self) -> int:
        self.reader.seek(self.offset + ENTRY_COUNT_OFFSET)
        return self.reader.read_long()

    def api_version(self) -> str:
        self.reader.seek(self.offset + API_VERSION_OFFSET)
        v = int.from_bytes(self.reader.read(2), "big")
        return f"{v >> 12}.{(v >> 8) & 0xF}.{(v >> 4) & 0xF}"

    def global_flags(self) -> int:
        self.reader.seek(self.offset + GLOBAL_FLAGS_OFFSET)
        return self.reader.read_long() & COMPRESSION_MASK

    def alias_size(self) -> int:
        self.reader.seek(self.offset + ALIAS_SIZE_OFFSET)
        return self.reader.read_long()

    def alias(self) -> Optional[str]:
        size = self.alias_size()
        if size > 0:
            return self.reader.read(size).decode("utf-8", "surrogateescape")
        return None

    def metadata_size(self) -> int:
        self.reader.seek(self.offset + ALIAS_OFFSET + self.alias_size())
        return self.reader.read_long()

    def has_metadata(self) -> bool:
        return self.metadata_size() > 0

    def metadata_bytes(self) -> Optional[bytes]:
        size = self.metadata_size()
        if size == 0:
            return None
        return self.reader.read(size)

    def metadata(self) -> Any:
        data = self.metadata_bytes()
        if data is None:
            return None
        return self._deserialize(data)

    def entry_metadata(self, entry: Entry) -> Any:
        if entry.metadata is None:
            return None
        return self._deserialize(entry.metadata)

    def data_offset(self) -> int:
        """Offset of the first entry payload."""
        return self.offset + self.size() + 4

    def entries(self) -> List[Entry]:
        return list(self.iter_entries())

    def iter_entries(self) -> Iterator[Entry]:
        count = self.entry_count()
        data_offset = self.data_offset()
        records_start = self.offset + ALIAS_OFFSET + self.alias_size() + 4 + self.metadata_size()
        self.reader.seek(records_start)
        for _ in range(count):
            entry = self._read_entry(data_offset)
            # The record is fully consumed before yielding, so callers may
            # reposition the reader; restore the cursor afterwards.
            resume = self.reader.tell()
            yield entry
            self.reader.seek(resume)
            data_offset += entry.compressed_size

    def _read_entry(self, data_offset: int) -> Entry:
        name_size = self.reader.read_long()
        raw_name = self.reader.read(name_size)
        usize, timestamp, csize, crc, flags, meta_size = _ENTRY_FIXED.unpack(self.reader.read(_ENTRY_FIXED.size))
        meta = self.reader.read(meta_size) if meta_size else None
        return Entry(
            name=canonical_name(raw_name.decode("utf-8", "surrogateescape")),
            name_size=name_size,
            uncompressed_size=usize,
            timestamp=timestamp,
            compressed_size=csize,
            crc32=crc,
            flags=flags & COMPRESSION_MASK,
            metadata_size=meta_size,
            metadata=meta,
            data_offset=data_offset,
        )

    def _deserialize(self, data: bytes) -> Any:
        try:
            return self.deserializer(data)
        except Exception as exc:
            raise MetadataError(f'The PHP archive file "{self.reader.path}" has invalid metadata.') from exc
