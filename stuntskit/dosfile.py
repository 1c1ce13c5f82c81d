"""DOS-style file handles backed by host files."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import BinaryIO

READ_ONLY = 0
WRITE_ONLY = 1
READ_WRITE = 2

_OPEN_MODES = {READ_ONLY: "rb", WRITE_ONLY: "r+b", READ_WRITE: "r+b"}


class DosFileError(OSError):
    """A DOS file service failed."""


@dataclass
class _OpenFile:
    stream: BinaryIO
    mode: int


class DosFileManager:
    """Hands out DOS file handles from a stack and maps them to open files."""

    def __init__(self, handle_count: int = 0xFFFF) -> None:
        self._free = list(range(handle_count))
        self._files: dict[int, _OpenFile] = {}

    def _take_handle(self) -> int:
        if not self._free:
            raise DosFileError("no free file handles")
        return self._free.pop()

    def _file(self, handle: int) -> _OpenFile:
        try:
            return self._files[handle]
        except KeyError:
            raise DosFileError(f"invalid handle: {handle}") from None

    def _register(self, stream: BinaryIO, mode: int) -> int:
        try:
            handle = self._take_handle()
        except DosFileError:
            stream.close()
            raise
        self._files[handle] = _OpenFile(stream, mode)
        return handle

    def create(self, filename: str, attributes: int = 0) -> int:
        """Create or truncate a file for reading and writing; returns its handle.

        The attribute value is accepted but host files carry no DOS attributes.
        """
        try:
            stream = open(filename, "w+b")
        except OSError as exc:
            raise DosFileError(str(exc)) from exc
        return self._register(stream, READ_WRITE)

    def open(self, filename: str, mode: int) -> int:
        """Open an existing file (0 read, 1 write, 2 read/write); returns its handle."""
        if mode not in _OPEN_MODES:
            raise DosFileError(f"invalid access mode: {mode}")
        try:
            stream = open(filename, _OPEN_MODES[mode])
        except OSError as exc:
            raise DosFileError(str(exc)) from exc
        return self._register(stream, mode)

    def close(self, handle: int) -> None:
        entry = self._file(handle)
        entry.stream.close()
        del self._files[handle]
        self._free.append(handle)

    def seek(self, handle: int, offset: int, origin: int) -> int:
        """Move the file pointer (origin 0 start, 1 current, 2 end); returns the new position."""
        if origin not in (os.SEEK_SET, os.SEEK_CUR, os.SEEK_END):
            raise DosFileError(f"invalid seek origin: {origin}")
        entry = self._file(handle)
        try:
            return entry.stream.seek(offset, origin)
        except OSError as exc:
            raise DosFileError(str(exc)) from exc

    def unlink(self, filename: str) -> None:
        try:
            os.remove(filename)
        except OSError as exc:
            raise DosFileError(str(exc)) from exc

    def read(self, handle: int, count: int) -> bytes:
        entry = self._file(handle)
        if entry.mode == WRITE_ONLY:
            raise DosFileError("access denied: handle is write-only")
        return entry.stream.read(count)

    def write(self, handle: int, data: bytes) -> int:
        entry = self._file(handle)
        if entry.mode == READ_ONLY:
            raise DosFileError("access denied: handle is read-only")
        written = entry.stream.write(data)
        entry.stream.flush()
        return written

    def __enter__(self) -> DosFileManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        for handle in list(self._files):
            self.close(handle)