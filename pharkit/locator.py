from __future__ import annotations

from typing import Optional

from .constants import STUB_TERMINATOR
from .fileio import FileReader


_SCAN_CHUNK = 8192


def find_offset(reader: FileReader) -> Optional[int]:
    """Find the manifest offset that follows the stub.

    Scans from the start of the file, lower-casing each byte and comparing it
    to ``STUB_TERMINATOR``. A mismatch resets the match counter without
    re-testing the current byte, so input such as ``___halt_compiler`` (an
    extra leading underscore) is not recognised.

    Matching stops one byte short of the terminator; the final ``>`` is
    skipped unchecked. A directly following CRLF belongs to the stub as well.

    Returns:
        The manifest offset, or None when the terminator is not present.
    """
    size = reader.size()
    want = len(STUB_TERMINATOR) - 1
    matched = 0
    end = -1
    pos = 0
    reader.seek(0)
    while pos < size:
        chunk = reader.read(min(_SCAN_CHUNK, size - pos))
        for i, byte in enumerate(chunk.lower()):
            if byte == STUB_TERMINATOR[matched]:
                matched += 1
            else:
                matched = 0
            if matched == want:
                end = pos + i + 1
                break
        if end >= 0:
            break
        pos += len(chunk)
    if end < 0:
        return None
    reader.seek(end + 1)
    position = reader.tell()
    if reader.peek(2) == b"\r\n":
        return position + 2
    return position
