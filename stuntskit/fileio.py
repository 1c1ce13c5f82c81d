"""Whole-file reading, writing and decompression of game resources."""

from __future__ import annotations

import fnmatch
import os
from typing import Iterator, Optional

from .decompress import DecompressionError, decompress

PARAGRAPH_SIZE = 16
_COMPRESSED_HEADER_SIZE = 4
_DELIMITERS = (":", "\\", "/", os.sep)


class FileError(Exception):
    """A file could not be read, written or unpacked."""


def _paragraphs(length: int) -> int:
    return (length >> 4) + (1 if length & 0xF else 0)


def build_path(directory: Optional[str], name: str, ext: str) -> str:
    """Join a directory, a base name and an extension, DOS style."""
    if not directory:
        return f"{name}{ext}"
    separator = "" if directory[-1] in (":", "\\") else "\\"
    return f"{directory}{separator}{name}{ext}"


def find_files(query: str) -> Iterator[str]:
    """Yield the files matching a wildcard query, with the query's directory prefix."""
    cut = max(query.rfind(delimiter) for delimiter in _DELIMITERS) + 1
    prefix, pattern = query[:cut], query[cut:].lower()
    if pattern == "*.*":
        pattern = "*"
    try:
        entries = sorted(
            entry.name for entry in os.scandir(prefix or ".") if entry.is_file()
        )
    except OSError:
        return
    for name in entries:
        if fnmatch.fnmatchcase(name.lower(), pattern):
            yield prefix + name


def read_file(path: str) -> bytes:
    """Contents of the whole file."""
    try:
        with open(path, "rb") as stream:
            return stream.read()
    except OSError as exc:
        raise FileError(f"{path}: file error: {exc}") from exc


def write_file(path: str, data: bytes) -> None:
    """Write ``data`` to ``path``; a partly written file is removed on failure."""
    try:
        with open(path, "wb") as stream:
            stream.write(bytes(data))
    except OSError as exc:
        try:
            os.remove(path)
        except OSError:
            pass
        raise FileError(f"{path}: file error: {exc}") from exc


def file_paragraphs(path: str) -> int:
    """Number of 16-byte paragraphs needed to hold the file."""
    try:
        length = os.path.getsize(path)
    except OSError as exc:
        raise FileError(f"{path}: file error: {exc}") from exc
    return _paragraphs(length)


def _decompressed_length(data: bytes, path: str) -> int:
    if len(data) < _COMPRESSED_HEADER_SIZE:
        raise FileError(f"{path}: file error: no compression header")
    return data[1] | (data[2] << 8) | (data[3] << 16)


def decomp_paragraphs(path: str) -> int:
    """Paragraphs needed for the unpacked contents of a compressed file."""
    try:
        with open(path, "rb") as stream:
            head = stream.read(_COMPRESSED_HEADER_SIZE)
    except OSError as exc:
        raise FileError(f"{path}: file error: {exc}") from exc
    return _paragraphs(_decompressed_length(head, path))


def decompress_file(path: str) -> bytes:
    """Read and unpack a compressed file."""
    data = read_file(path)
    if _decompressed_length(data, path) == 0:
        raise FileError(f"{path}: invalid pack type")
    try:
        return bytes(decompress(data))
    except (DecompressionError, ValueError, IndexError, KeyError) as exc:
        raise FileError(f"{path}: invalid pack type: {exc}") from exc


def load_resfile(base: str) -> bytes:
    """Load ``base.res``, or unpack ``base.pre`` when the former is missing."""
    try:
        return read_file(base + ".res")
    except FileError:
        pass
    try:
        return decompress_file(base + ".pre")
    except FileError as exc:
        raise FileError(f"{base}: no resource file found") from exc


def load_3dres(base: str) -> bytes:
    """Unpack ``base.p3s``, or load ``base.3sh`` when the former is unusable."""
    try:
        return decompress_file(base + ".p3s")
    except FileError:
        pass
    try:
        return read_file(base + ".3sh")
    except FileError as exc:
        raise FileError(f"{base}: no shape file found") from exc