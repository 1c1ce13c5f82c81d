"""Rebuilds the game executable from its shared code, a patch file and graphics code."""

from __future__ import annotations

import argparse
import os
import struct
import sys
from typing import MutableSequence, Optional, Sequence

from .mzexe import exe_size_from_blocks

HEADER_LENGTH = 30

DEFAULT_HEADER = "mcga.hdr"
DEFAULT_COMMON = "ega.cmn"
DEFAULT_DIF = "mcga.dif"
DEFAULT_CODE = "mcga.cod"
DEFAULT_OUTPUT = "game.exe"


def next_offset(offset: int, segment: int, delta: int) -> tuple[int, int]:
    """Advance a segment:offset pair by ``delta`` bytes, keeping the offset below 16."""
    total = (offset + delta) & 0xFFFFFFFF
    paragraphs = (total // 0x10) & 0xFFFF
    segment = (segment + paragraphs) & 0xFFFF
    offset = (total - (paragraphs << 4)) & 0xFFFF
    return offset, segment


def apply_dif(dif: bytes, image: MutableSequence[int]) -> int:
    """Patch ``image`` in place from a dif stream; returns the number of patches.

    Each record is a little-endian word holding the distance from the previous
    patch (low 15 bits) and a flag for a four-byte rather than two-byte patch,
    followed by the patch bytes. A zero word ends the stream.
    """
    dif = bytes(dif)
    segment = (0 - 0x1000) & 0xFFFF
    offset = 0xFFFF
    offset, segment = next_offset(offset, segment, 0)

    position = 0
    patches = 0
    while True:
        if position + 2 > len(dif):
            raise ValueError("dif data ends without a terminator")
        (marker,) = struct.unpack_from("<H", dif, position)
        position += 2
        if marker == 0:
            return patches
        offset, segment = next_offset(offset, segment, marker & 0x7FFF)
        target = (segment << 4) | offset
        size = 4 if marker & 0x8000 else 2
        patch = dif[position:position + size]
        if len(patch) < size:
            raise ValueError("dif data ends inside a patch")
        if target + size > len(image):
            raise ValueError(f"patch at 0x{target:X} lies outside the image")
        image[target:target + size] = patch
        position += size
        patches += 1


def _place(image: bytearray, position: int, data: bytes) -> None:
    if position + len(data) > len(image):
        raise ValueError(
            f"{len(data)} bytes at 0x{position:X} do not fit into {len(image)} bytes"
        )
    image[position:position + len(data)] = data


def combine(header: bytes, common: bytes, dif: bytes, code: bytes) -> bytes:
    """Assemble the executable: header, shared code patched by the dif, then the code."""
    header = bytes(header)
    if len(header) < HEADER_LENGTH:
        raise ValueError(f"header needs {HEADER_LENGTH} bytes, got {len(header)}")
    bytes_in_last_page, pages = struct.unpack_from("<HH", header, 2)
    (paragraphs,) = struct.unpack_from("<H", header, 8)

    image = bytearray(exe_size_from_blocks(pages, bytes_in_last_page))
    header_size = paragraphs * 16

    _place(image, 0, header[:HEADER_LENGTH])
    _place(image, header_size, bytes(common))
    apply_dif(dif, memoryview(image)[header_size:])
    _place(image, header_size + len(common), bytes(code))
    return bytes(image)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="execombiner", description="Rebuild the game executable from its parts."
    )
    parser.add_argument("--assets", default="assets", help="directory holding the parts")
    parser.add_argument("--output", default=DEFAULT_OUTPUT, help="resulting executable")
    args = parser.parse_args(argv)

    parts = []
    try:
        for name in (DEFAULT_HEADER, DEFAULT_COMMON, DEFAULT_DIF, DEFAULT_CODE):
            with open(os.path.join(args.assets, name), "rb") as stream:
                parts.append(stream.read())
    except OSError as exc:
        print(f"execombiner: {exc}", file=sys.stderr)
        return 1

    try:
        image = combine(*parts)
    except ValueError as exc:
        print(f"execombiner: {exc}", file=sys.stderr)
        return 1

    try:
        with open(args.output, "wb") as stream:
            stream.write(image)
    except OSError as exc:
        print(f"execombiner: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())