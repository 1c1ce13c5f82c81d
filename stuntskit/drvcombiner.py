"""Builds an executable with the sound driver linked into its image.

The driver is appended after a zero-filled copy of the former uninitialised
data, the stack is moved behind it, the driver load/unload code is replaced
with NOPs and the driver pointer gets a relocation entry of its own.
"""

from __future__ import annotations

import argparse
import os
import struct
import sys
from dataclasses import replace
from typing import MutableSequence, Optional, Sequence

from .mzexe import (
    HEADER_SIZE,
    PARAGRAPH_SIZE,
    RELOCATION_ENTRY_SIZE,
    ExeHeader,
    Ptr16,
    bytes_to_paragraphs,
    entries_unique,
    format_header,
    format_layout,
    pad_to_paragraph,
    read_relocation_table,
    relocations_in_range,
    remove_relocations,
)

NOP_OPCODE = 0x90

DEFAULT_EXE = os.path.join("assets", "game_cracked.exe")
DEFAULT_DRIVER = os.path.join("assets", "AD15.DRV")
DEFAULT_OUTPUT = "game_drv.exe"

# File offset of the far pointer to the loaded driver (dseg:4E9A).
DRIVER_POINTER_FILE_OFFSET = 0x32E9A
# File offset of the default audio driver name (dseg:53A2).
DRIVER_NAME_FILE_OFFSET = 0x333A2
OLD_DRIVER_NAME = b"pc15"
NEW_DRIVER_NAME = b"ad15\0"

IDA_IMAGE_BASE = 0x10000
LOADED_DRIVER_NAME_IDA = 0x42DAE
LOADED_DRIVER_NAME = b"ad\0"
AUDIO_BYTE_IDA = 0x45950
DRIVER_FLAG_IDA = 0x45948
FLAG_VALUE = 0x7F

# File offset ranges of the driver load/unload code and of the code that
# clears the former uninitialised data.
NOP_RANGES = (
    (0x2A162, 0x2A17D),
    (0x2A18E, 0x2A218),
    (0x2A2E2, 0x2A2F4),
    (0x2A377, 0x2A387),
    (0x1F55C, 0x1F568),
)

_ENTRY = struct.Struct("<HH")


def _put(buffer: MutableSequence[int], position: int, data: bytes) -> None:
    if position < 0 or position + len(data) > len(buffer):
        raise ValueError(
            f"write of {len(data)} bytes at 0x{position:X} is outside the buffer"
        )
    buffer[position:position + len(data)] = data


def nop_range(
    image: MutableSequence[int],
    table: MutableSequence[Ptr16],
    begin: int,
    end: int,
    header_size: int,
) -> list[int]:
    """Fill file offsets ``[begin, end)`` with NOPs and drop the relocations inside.

    ``header_size`` converts the file offsets into image offsets for the
    relocation lookup. Returns the image offsets of the removed entries.
    """
    if end < begin:
        raise ValueError(f"range end 0x{end:X} is before its begin 0x{begin:X}")
    image_begin = begin - header_size
    found = relocations_in_range(table, image_begin, image_begin + (end - begin))
    remove_relocations(table, found)
    _put(image, begin, bytes([NOP_OPCODE]) * (end - begin))
    return found


def integrate_driver(exe: bytes, driver: bytes) -> bytes:
    """Return a copy of ``exe`` with ``driver`` built into its image."""
    exe = bytes(exe)
    driver = bytes(driver)
    old = ExeHeader.parse(exe)
    if old.exe_size != len(exe):
        raise ValueError(
            f"header describes {old.exe_size} bytes but the file has {len(exe)}"
        )

    table = read_relocation_table(exe, replace(old, reloc_table_offset=HEADER_SIZE))
    if not entries_unique(table):
        raise ValueError("relocation table holds duplicate entries")

    image_size = old.exe_size - old.header_bytes
    if image_size < 0:
        raise ValueError("header is larger than the file")
    udata_size = old.min_extra_bytes - old.sp
    if udata_size < 0:
        raise ValueError("stack is larger than the extra memory")
    old_table_size = old.num_relocs * RELOCATION_ENTRY_SIZE

    new_num_relocs = old.num_relocs + 1
    new_header_paragraphs = bytes_to_paragraphs(
        HEADER_SIZE + new_num_relocs * RELOCATION_ENTRY_SIZE
    )
    new_header_bytes = new_header_paragraphs * PARAGRAPH_SIZE
    padded_image_size = pad_to_paragraph(image_size + udata_size + len(driver))
    file_size = new_header_bytes + padded_image_size

    out = bytearray([NOP_OPCODE]) * file_size

    header = replace(
        old,
        header_paragraphs=new_header_paragraphs,
        num_relocs=new_num_relocs,
        ss=padded_image_size // PARAGRAPH_SIZE,
    )
    header.set_exe_size(file_size)
    header.min_extra_paragraphs = old.sp // PARAGRAPH_SIZE
    header.max_extra_paragraphs = (
        header.min_extra_paragraphs + old.max_extra_paragraphs - old.min_extra_paragraphs
    ) & 0xFFFF

    _put(out, HEADER_SIZE, bytes(old_table_size))

    _put(out, new_header_bytes, exe[old.header_bytes:old.header_bytes + image_size])
    udata_offset = new_header_bytes + image_size
    _put(out, udata_offset, bytes(udata_size))
    _put(out, udata_offset + udata_size, driver)

    # The segment word of the driver pointer must be relocated at load time.
    new_entry = Ptr16.from_linear(DRIVER_POINTER_FILE_OFFSET - new_header_bytes + 2)
    driver_ptr = Ptr16.from_linear(image_size + udata_size)
    if driver_ptr.offset != 0:
        raise ValueError("driver does not start on a paragraph boundary")
    _put(out, DRIVER_POINTER_FILE_OFFSET, _ENTRY.pack(driver_ptr.offset, driver_ptr.segment))
    table.append(new_entry)

    for begin, end in NOP_RANGES:
        nop_range(out, table, begin, end, old.header_bytes)

    current_name = bytes(out[DRIVER_NAME_FILE_OFFSET:DRIVER_NAME_FILE_OFFSET + 4])
    if current_name != OLD_DRIVER_NAME:
        raise ValueError(
            f"expected driver name {OLD_DRIVER_NAME!r} at 0x{DRIVER_NAME_FILE_OFFSET:X}, "
            f"found {current_name!r}"
        )
    _put(out, DRIVER_NAME_FILE_OFFSET, NEW_DRIVER_NAME)

    def ida_to_file(ida_offset: int) -> int:
        return new_header_bytes + ida_offset - IDA_IMAGE_BASE

    _put(out, ida_to_file(LOADED_DRIVER_NAME_IDA), LOADED_DRIVER_NAME)
    _put(out, ida_to_file(AUDIO_BYTE_IDA), bytes([FLAG_VALUE]))
    _put(out, ida_to_file(DRIVER_FLAG_IDA), bytes([FLAG_VALUE]))

    _put(out, HEADER_SIZE, b"".join(_ENTRY.pack(e.offset, e.segment) for e in table))
    header.num_relocs = len(table)
    _put(out, 0, header.to_bytes())
    return bytes(out)


def _print_exe(title: str, header: ExeHeader, separator: str) -> None:
    print(f"\n-----------------------\n{title}\n-----------------------")
    sys.stdout.write(format_header(header))
    print(separator)
    sys.stdout.write(format_layout(header))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="drvcombiner", description="Build the sound driver into the game executable."
    )
    parser.add_argument("--exe", default=DEFAULT_EXE, help="unpacked game executable")
    parser.add_argument("--driver", default=DEFAULT_DRIVER, help="sound driver binary")
    parser.add_argument("--output", default=DEFAULT_OUTPUT, help="resulting executable")
    args = parser.parse_args(argv)

    try:
        with open(args.exe, "rb") as stream:
            exe = stream.read()
        with open(args.driver, "rb") as stream:
            driver = stream.read()
    except OSError as exc:
        print(f"drvcombiner: {exc}", file=sys.stderr)
        return 1

    try:
        result = integrate_driver(exe, driver)
    except ValueError as exc:
        print(f"drvcombiner: {exc}", file=sys.stderr)
        return 1

    _print_exe("old exe", ExeHeader.parse(exe), "----------")
    _print_exe("new exe", ExeHeader.parse(result), "-----------")

    try:
        with open(args.output, "wb") as stream:
            stream.write(result)
    except OSError as exc:
        print(f"drvcombiner: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())