from __future__ import annotations

import os
import struct
from typing import BinaryIO, Iterator, Optional

from .errors import FileError


_LONG = struct.Struct("<I")


class FileReader:
    """Strict reads over a single file.

    Every read either returns exactly the requested number of bytes or raises
    ``FileError``; a seek that the OS rejects is reported the same way. The
    handle is opened on first use and owned by this instance, so one reader
    must not be shared between concurrent callers.
    """

    def __init__(self, path: str):
        path = os.fspath(path)
        if not os.path.isfile(path):
            raise FileError(f'The path "{path}" is not a file or does not exist.', path=path)
        self.path = path
        self.f: Optional[BinaryIO] = None

    def __enter__(self):
        self.handle()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def handle(self) -> BinaryIO:
        if self.f is None:
            try:
                self.f = open(self.path, "rb")
            except OSError as exc:
                raise FileError(f'Could not open "{self.path}": {exc}', path=self.path) from exc
        return self.f

    def close(self):
        if self.f is not None:
            self.f.close()
            self.f = None

    def size(self) -> int:
        try:
            return os.stat(self.path).st_size
        except OSError as exc:
            raise FileError(f'Could not read the size of "{self.path}": {exc}', path=self.path) from exc

    def tell(self) -> int:
        return self.handle().tell()

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> None:
        f = self.handle()
        try:
            f.seek(offset, whence)
        except (OSError, ValueError) as exc:
            raise FileError(f'Could not seek to {offset} in "{self.path}".', path=self.path) from exc

    def is_eof(self) -> bool:
        return self.tell() >= self.size()

    def read(self, n: int) -> bytes:
        if n == 0:
            return b""
        f = self.handle()
        buf = bytearray()
        while len(buf) < n:
            try:
                chunk = f.read(n - len(buf))
            except OSError as exc:
                raise FileError(f'Could not read from "{self.path}": {exc}', path=self.path) from exc
            if not chunk:
                break
            buf += chunk
        if len(buf) != n:
            raise FileError(
                f'Only read {len(buf)} bytes of {n} from "{self.path}".',
                path=self.path,
                expected=n,
                actual=len(buf),
            )
        return bytes(buf)

    def peek(self, n: int) -> bytes:
        """Return up to ``n`` bytes without moving the cursor."""
        f = self.handle()
        pos = f.tell()
        try:
            return f.read(n)
        finally:
            f.seek(pos)

    def read_long(self) -> int:
        return _LONG.unpack(self.read(_LONG.size))[0]

    def iter_range(self, start: int, length: int, chunk_size: int) -> Iterator[bytes]:
        self.seek(start)
        remaining = length
        while remaining > 0:
            n = min(chunk_size, remaining)
            yield self.read(n)
            remaining -= n
