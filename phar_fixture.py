"""Builds small archive files for the test suite."""

from __future__ import annotations

import bz2
import hashlib
import struct
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from pharkit.constants import COMPRESSION_BZ2, COMPRESSION_GZ, SIGNATURE_MAGIC


TERMINATOR = b"__HALT_COMPILER(); ?>\r\n"
TIMESTAMP = 1383980172


@dataclass
class FixtureEntry:
    name: bytes
    data: bytes = b""
    flags: int = 0
    metadata: bytes = b""
    # Overrides the flags recorded in the manifest without changing how the payload is compressed
    recorded_flags: Optional[int] = None


def stub_of_length(total: int) -> bytes:
    """Return a stub whose manifest offset is exactly ``total``."""
    head = b"<?php\n"
    filler = total - len(head) - len(TERMINATOR)
    assert filler >= 0
    return head + b"#" * filler + TERMINATOR


def deflate_raw(data: bytes) -> bytes:
    c = zlib.compressobj(9, zlib.DEFLATED, -zlib.MAX_WBITS)
    return c.compress(data) + c.flush()


def compress(data: bytes, flags: int) -> bytes:
    if flags & COMPRESSION_BZ2:
        return bz2.compress(data)
    if flags & COMPRESSION_GZ:
        return deflate_raw(data)
    return data


def build_phar(
    entries: Sequence[FixtureEntry],
    *,
    stub: bytes = b"<?php __HALT_COMPILER(); ?>\r\n",
    alias: bytes = b"test.phar",
    metadata: bytes = b"",
    global_flags: int = 0,
    api: bytes = b"\x11\x00",
) -> bytes:
    records = bytearray()
    payloads: List[bytes] = []
    for e in entries:
        payload = compress(e.data, e.flags)
        flags = e.flags if e.recorded_flags is None else e.recorded_flags
        records += struct.pack("<I", len(e.name)) + e.name
        records += struct.pack(
            "<IIIIII", len(e.data), TIMESTAMP, len(payload), zlib.crc32(e.data) & 0xFFFFFFFF, flags, len(e.metadata)
        )
        records += e.metadata
        payloads.append(payload)
    header = struct.pack("<I", len(entries)) + api + struct.pack("<I", global_flags)
    header += struct.pack("<I", len(alias)) + alias + struct.pack("<I", len(metadata)) + metadata
    body = header + bytes(records)
    return stub + struct.pack("<I", len(body)) + body + b"".join(payloads)


def sign_hash(content: bytes, flag: int, algorithm: str) -> bytes:
    digest = hashlib.new(algorithm, content).digest()
    return content + digest + struct.pack("<I", flag) + SIGNATURE_MAGIC


def sign_raw(content: bytes, signature: bytes, flag: int = 0x10) -> bytes:
    return content + signature + struct.pack("<I", len(signature)) + struct.pack("<I", flag) + SIGNATURE_MAGIC


def write(path: Path, data: bytes) -> Path:
    path.write_bytes(data)
    return path


def sample_entries() -> List[FixtureEntry]:
    return [
        FixtureEntry(b"bin/main", b"#!/usr/bin/env php\n<?php require __DIR__ . '/../src/Put.php';\n"),
        FixtureEntry(b"src/Put.php", b"<?php\nclass Put\n{\n}\n" * 4, metadata=b'a:1:{s:4:"rand";i:1317613458;}'),
        FixtureEntry(b"docs/", b""),
    ]
