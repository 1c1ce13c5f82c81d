import struct

import pytest

from stuntskit.mzexe import (
    BLOCK_SIZE,
    HEADER_SIZE,
    ExeHeader,
    Ptr16,
    PtrConverter,
    blocks_from_exe_size,
    bytes_to_paragraphs,
    entries_unique,
    exe_size_from_blocks,
    format_header,
    format_layout,
    format_relocation_table,
    hex_string,
    pad_to_paragraph,
    read_relocation_table,
    relocations_in_range,
    remove_relocations,
)


def _header(**kwargs):
    base = dict(signature=0x5A4D, reloc_table_offset=HEADER_SIZE, header_paragraphs=2)
    base.update(kwargs)
    return ExeHeader(**base)


@pytest.mark.parametrize("size", [1, 511, 512, 513, 1024, 40000])
def test_exe_size_round_trip(size):
    blocks, last = blocks_from_exe_size(size)
    assert exe_size_from_blocks(blocks, last) == size
    assert 0 <= last < BLOCK_SIZE


def test_full_block_has_no_partial_bytes():
    assert exe_size_from_blocks(1, 0) == BLOCK_SIZE
    assert blocks_from_exe_size(BLOCK_SIZE)[1] == 0


def test_negative_size_rejected():
    with pytest.raises(ValueError):
        blocks_from_exe_size(-1)


@pytest.mark.parametrize("size", [0, 1, 15, 16, 17, 100])
def test_paragraph_padding(size):
    padded = pad_to_paragraph(size)
    assert padded % 16 == 0
    assert size <= padded < size + 16
    assert bytes_to_paragraphs(size) * 16 == padded


def test_header_round_trip_and_signature():
    header = _header(num_relocs=3, ss=0x1234, sp=0x800, ip=0x12, cs=0x1CC5)
    header.set_exe_size(5000)
    data = header.to_bytes()
    assert len(data) == HEADER_SIZE
    assert data[:2] == b"MZ"
    parsed = ExeHeader.parse(data + b"\x00" * 10)
    assert parsed == header
    assert parsed.exe_size == 5000


def test_header_parse_too_short():
    with pytest.raises(ValueError):
        ExeHeader.parse(b"MZ\x00")


def test_header_field_out_of_range():
    with pytest.raises(ValueError):
        ExeHeader(ss=0x10000).to_bytes()


def test_header_byte_properties():
    header = _header(min_extra_paragraphs=4, max_extra_paragraphs=9)
    assert header.header_bytes == 2 * 16
    assert header.min_extra_bytes == 4 * 16
    assert header.max_extra_bytes == 9 * 16


@pytest.mark.parametrize("linear", [0, 15, 16, 0x12345, 0x42DAE])
def test_ptr16_linear_round_trip(linear):
    ptr = Ptr16.from_linear(linear)
    assert ptr.linear() == linear
    assert 0 <= ptr.offset < 16


def test_ptr16_add():
    a = Ptr16(0x1CC5, 0x0012)
    b = Ptr16(0x0001, 0x0003)
    assert (a + b).linear() == a.linear() + b.linear()


def test_converter_maps_first_instruction():
    exe_first = Ptr16(0x1CC5, 0x0012)
    dosbox_first = Ptr16(0x1ED3, 0x0012)
    conv = PtrConverter(exe_first, dosbox_first)
    ida_first = exe_first.linear() + 0x10000
    assert conv.dosbox_ptr(ida_first).linear() == dosbox_first.linear()
    assert conv.ida_offset(dosbox_first) == ida_first


@pytest.mark.parametrize("ida", [0x2CC62, 0x10000, 0x39E56, 0x42DAE])
def test_converter_round_trip(ida):
    conv = PtrConverter(Ptr16(0x1CC5, 0x0012), Ptr16(0x1ED3, 0x0012))
    assert conv.ida_offset(conv.dosbox_ptr(ida)) == ida


def test_read_relocation_table():
    entries = [Ptr16(1, 2), Ptr16(0x30, 4)]
    header = _header(num_relocs=len(entries))
    body = b"".join(struct.pack("<2H", e.offset, e.segment) for e in entries)
    data = header.to_bytes() + body
    assert read_relocation_table(data, header) == entries


def test_read_relocation_table_truncated():
    header = _header(num_relocs=5)
    with pytest.raises(ValueError):
        read_relocation_table(header.to_bytes(), header)


def test_relocations_in_range_and_remove():
    table = [Ptr16(0, 4), Ptr16(1, 0), Ptr16(2, 0), Ptr16(0, 8)]
    found = relocations_in_range(table, 4, 20)
    assert found == [4, 16, 8]
    remove_relocations(table, found)
    assert table == [Ptr16(2, 0)]


def test_remove_missing_relocation():
    table = [Ptr16(0, 4)]
    with pytest.raises(ValueError):
        remove_relocations(table, [99])
    assert table == [Ptr16(0, 4)]


def test_entries_unique():
    assert entries_unique([Ptr16(0, 4), Ptr16(1, 0)])
    assert not entries_unique([Ptr16(1, 0), Ptr16(0, 16)])


def test_hex_string():
    assert hex_string(b"\x00\xab\x10") == "00 AB 10"
    assert hex_string(b"") == ""


def test_format_header():
    header = _header(ip=0x12, cs=0x1CC5)
    text = format_header(header)
    lines = text.splitlines()
    assert lines[0] == "exe_header:"
    assert f"  cs: 0x{header.cs:04X}" in lines
    assert f"  signature: 0x{header.signature:04X}" in lines


def test_format_relocation_table():
    table = [Ptr16(1, 2), Ptr16(3, 4)]
    lines = format_relocation_table(table).splitlines()
    assert lines[0] == f"relocation table entries count: {len(table)}"
    assert lines[1].startswith("ptr16: 0x0001:0x0002, offset32: 0x")
    assert len([line for line in lines if line.startswith("ptr16:")]) == len(table)


def test_format_layout_sections():
    header = _header(num_relocs=1, ss=0x40, sp=0x100, min_extra_paragraphs=0x20,
                     max_extra_paragraphs=0x30, cs=0, ip=0x10)
    header.set_exe_size(2000)
    text = format_layout(header)
    assert text.startswith("exe file layout:\n")
    assert "loaded exe layout:" in text
    assert "  PSP: size: 0x0100 = 256 bytes" in text
    assert "    relocation_table:" in text
    assert "    stack:" in text


def test_format_layout_without_relocations():
    header = _header(num_relocs=0)
    header.set_exe_size(64)
    text = format_layout(header)
    assert "relocation_table" not in text
    assert "  (max_extra_paragraphs_end)" in text