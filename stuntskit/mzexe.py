"""MZ executable header, relocation table and segmented pointer helpers."""

from __future__ import annotations

import struct
from dataclasses import dataclass, fields
from typing import Iterable, MutableSequence, Sequence

BLOCK_SIZE = 512
PARAGRAPH_SIZE = 16
HEADER_SIZE = 28
RELOCATION_ENTRY_SIZE = 4
MZ_SIGNATURE = 0x5A4D

# IDA loads a DOS executable at segment 0x1000 for analysis.
IDA_LOAD_SEGMENT = 0x1000
IDA_LOAD_OFFSET32 = IDA_LOAD_SEGMENT * PARAGRAPH_SIZE

_HEADER_FORMAT = "<14H"
_ENTRY_FORMAT = "<2H"


def exe_size_from_blocks(blocks_in_file: int, bytes_in_last_block: int) -> int:
    """File size described by the block count and the bytes used in the last block."""
    size = blocks_in_file * BLOCK_SIZE
    if bytes_in_last_block > 0:
        size -= BLOCK_SIZE - bytes_in_last_block
    return size


def blocks_from_exe_size(size: int) -> tuple[int, int]:
    """Block count and bytes in the last block for a file of ``size`` bytes."""
    if size < 0:
        raise ValueError(f"negative size: {size}")
    blocks, rest = divmod(size, BLOCK_SIZE)
    if rest:
        blocks += 1
    return blocks, rest


def bytes_to_paragraphs(size: int) -> int:
    """Number of paragraphs needed to hold ``size`` bytes."""
    paragraphs, rest = divmod(size, PARAGRAPH_SIZE)
    return paragraphs + 1 if rest else paragraphs


def pad_to_paragraph(size: int) -> int:
    """``size`` rounded up to a whole number of paragraphs."""
    return bytes_to_paragraphs(size) * PARAGRAPH_SIZE


@dataclass
class ExeHeader:
    """The 28-byte MZ header."""

    signature: int = 0
    bytes_in_last_block: int = 0
    blocks_in_file: int = 0
    num_relocs: int = 0
    header_paragraphs: int = 0
    min_extra_paragraphs: int = 0
    max_extra_paragraphs: int = 0
    ss: int = 0
    sp: int = 0
    checksum: int = 0
    ip: int = 0
    cs: int = 0
    reloc_table_offset: int = 0
    overlay_number: int = 0

    @classmethod
    def parse(cls, data: bytes) -> ExeHeader:
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            raise ValueError(f"header needs {HEADER_SIZE} bytes, got {len(data)}")
        return cls(*struct.unpack_from(_HEADER_FORMAT, data))

    def to_bytes(self) -> bytes:
        values = [getattr(self, f.name) for f in fields(self)]
        try:
            return struct.pack(_HEADER_FORMAT, *values)
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from None

    @property
    def exe_size(self) -> int:
        return exe_size_from_blocks(self.blocks_in_file, self.bytes_in_last_block)

    def set_exe_size(self, size: int) -> None:
        self.blocks_in_file, self.bytes_in_last_block = blocks_from_exe_size(size)

    @property
    def header_bytes(self) -> int:
        return self.header_paragraphs * PARAGRAPH_SIZE

    @property
    def min_extra_bytes(self) -> int:
        return self.min_extra_paragraphs * PARAGRAPH_SIZE

    @property
    def max_extra_bytes(self) -> int:
        return self.max_extra_paragraphs * PARAGRAPH_SIZE


@dataclass(frozen=True)
class Ptr16:
    """A segment:offset pointer."""

    segment: int = 0
    offset: int = 0

    @classmethod
    def from_linear(cls, offset32: int) -> Ptr16:
        segment, offset = divmod(offset32, PARAGRAPH_SIZE)
        return cls(segment & 0xFFFF, offset)

    def linear(self) -> int:
        return self.segment * PARAGRAPH_SIZE + self.offset

    def __add__(self, other: Ptr16) -> Ptr16:
        if not isinstance(other, Ptr16):
            return NotImplemented
        return Ptr16.from_linear(self.linear() + other.linear())


class PtrConverter:
    """Converts between IDA linear offsets and DOSBox segment:offset pointers."""

    def __init__(self, exe_first_instruction: Ptr16, dosbox_first_instruction: Ptr16) -> None:
        self.exe_first_instruction = exe_first_instruction
        self.dosbox_first_instruction = dosbox_first_instruction
        self.ida_base = IDA_LOAD_OFFSET32
        self.dosbox_base = dosbox_first_instruction.linear() - exe_first_instruction.linear()

    def dosbox_ptr(self, ida_offset: int) -> Ptr16:
        return Ptr16.from_linear(ida_offset - self.ida_base + self.dosbox_base)

    def ida_offset(self, ptr: Ptr16) -> int:
        return self.ida_base + ptr.linear() - self.dosbox_base


def read_relocation_table(data: bytes, header: ExeHeader) -> list[Ptr16]:
    """Relocation entries stored at the header's table offset."""
    data = bytes(data)
    begin = header.reloc_table_offset
    end = begin + header.num_relocs * RELOCATION_ENTRY_SIZE
    if end > len(data):
        raise ValueError("relocation table extends past the end of the data")
    return [
        Ptr16(segment, offset)
        for offset, segment in struct.iter_unpack(_ENTRY_FORMAT, data[begin:end])
    ]


def relocations_in_range(table: Iterable[Ptr16], begin: int, end: int) -> list[int]:
    """Image offsets of the entries that fall inside ``[begin, end)``."""
    return [entry.linear() for entry in table if begin <= entry.linear() < end]


def entries_unique(table: Iterable[Ptr16]) -> bool:
    """True when no two entries point at the same image offset."""
    offsets = [entry.linear() for entry in table]
    return len(set(offsets)) == len(offsets)


def remove_relocations(table: MutableSequence[Ptr16], offsets: Iterable[int]) -> None:
    """Remove, in place, the first entry matching each image offset."""
    for offset in offsets:
        index = next((i for i, entry in enumerate(table) if entry.linear() == offset), None)
        if index is None:
            raise ValueError(f"no relocation entry at offset 0x{offset:X}")
        del table[index]


def hex_string(data: bytes) -> str:
    """Bytes as upper-case hex pairs separated by spaces."""
    return " ".join(f"{byte:02X}" for byte in bytes(data))


def format_header(header: ExeHeader) -> str:
    lines = ["exe_header:"]
    lines += [f"  {f.name}: 0x{getattr(header, f.name):04X}" for f in fields(header)]
    lines.append("")
    return "\n".join(lines) + "\n"


def format_relocation_table(table: Sequence[Ptr16]) -> str:
    lines = [f"relocation table entries count: {len(table)}"]
    lines += [
        f"ptr16: 0x{entry.segment:04X}:0x{entry.offset:04X}, offset32: 0x{entry.linear():08X}"
        for entry in table
    ]
    lines.append("")
    return "\n".join(lines) + "\n"


def _span(label: str, begin: int, end: int, size: int) -> str:
    return f"{label}: [0x{begin:08X} - [0x{end:08X} size: 0x{size:X} = {size} bytes"


def format_layout(header: ExeHeader) -> str:
    """Describe the file layout and the loaded memory layout of an executable."""
    header_end = HEADER_SIZE
    reloc_begin = header.reloc_table_offset
    reloc_end = reloc_begin + header.num_relocs * RELOCATION_ENTRY_SIZE
    paragraphs_end = header.header_bytes

    lines = ["exe file layout:", "(exe_begin)", "  (header_paragraphs_begin)"]
    lines.append(_span("    header", 0, header_end, header_end))
    if header_end != reloc_begin:
        lines.append(_span("    unused space", header_end, reloc_begin, reloc_begin - header_end))
    if reloc_begin != reloc_end:
        lines.append(_span("    relocation_table", reloc_begin, reloc_end, reloc_end - reloc_begin))
    if reloc_end != paragraphs_end:
        lines.append(
            _span(
                "    unused space (header_paragraphs padding)",
                reloc_end,
                paragraphs_end,
                paragraphs_end - reloc_end,
            )
        )
    lines.append("  (header_paragraphs_end)")

    exe_end = header.exe_size
    image_size = exe_end - paragraphs_end
    if image_size > 0:
        lines.append(_span("  image", paragraphs_end, exe_end, image_size))
    lines += ["(exe_end)", "", "loaded exe layout:"]

    image_begin = 0
    image_end = image_begin + image_size
    stack_begin = header.ss * PARAGRAPH_SIZE
    stack_end = stack_begin + header.sp
    stack_size = header.sp
    udata_before_size = stack_begin - image_end
    udata_after_end = image_end + header.min_extra_bytes
    udata_after_size = udata_after_end - stack_end
    extra_diff = header.max_extra_bytes - header.min_extra_bytes
    min_end = image_end + header.min_extra_bytes
    max_end = image_end + header.max_extra_bytes

    lines.append("  PSP: size: 0x0100 = 256 bytes")
    lines.append(
        f"  <--- load_segment 0x0000, in IDA: ptr16: 0x{IDA_LOAD_SEGMENT:04X}:0x0 "
        f"= offset32: 0x{IDA_LOAD_OFFSET32:08X})"
    )
    if image_size > 0:
        lines.append(
            f"  image: [0x{image_begin:08X} - [0x{image_end:08X}, in IDA: "
            f"[0x{image_begin + IDA_LOAD_OFFSET32:08X} - [0x{image_end + IDA_LOAD_OFFSET32:08X} "
            f"size: 0x{image_size:X} = {image_size} bytes"
        )
        cs_ip = Ptr16(header.cs, header.ip).linear()
        cs_ida = (header.cs + IDA_LOAD_SEGMENT) & 0xFFFF
        lines.append(
            f"    first instruction: ptr16: 0x{header.cs:04X}:0x{header.ip:04X}, "
            f"offset32: 0x{cs_ip:08X}, in IDA: ptr16: 0x{cs_ida:04X}:0x{header.ip:04X}, "
            f"offset32: 0x{cs_ip + IDA_LOAD_OFFSET32:08X}"
        )
    lines.append("  (min/max_extra_paragraphs_begin)")
    if udata_before_size > 0:
        lines.append(_span("    udata", image_end, stack_begin, udata_before_size))
    if stack_size > 0:
        lines.append(_span("    stack", stack_begin, stack_end, stack_size))
    if udata_after_size > 0:
        lines.append(_span("    udata", stack_end, udata_after_end, udata_after_size))
    lines.append("  (min_extra_paragraphs_end)")
    if extra_diff > 0:
        lines.append(_span("    udata", min_end, max_end, extra_diff))
    lines.append("  (max_extra_paragraphs_end)")
    return "\n".join(lines) + "\n"