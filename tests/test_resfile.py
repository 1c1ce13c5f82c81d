import struct

import pytest

from stuntskit.resfile import ResourceFile


def _archive(entries):
    """Build an archive from (id, offset, data) with data laid out by offset."""
    count = len(entries)
    table_size = 6 + count * 8
    body_size = max((offset + len(data) for _, offset, data in entries), default=0)
    body = bytearray(body_size)
    for _, offset, data in entries:
        body[offset:offset + len(data)] = data
    ids = b"".join(name.ljust(4, b"\0") for name, _, _ in entries)
    offsets = b"".join(struct.pack("<I", offset) for _, offset, _ in entries)
    header = struct.pack("<IH", table_size + body_size, count)
    return header + ids + offsets + bytes(body)


@pytest.fixture
def archive():
    # Table order differs from data order on purpose.
    return ResourceFile(
        _archive([(b"last", 8, b"tail!"), (b"abcd", 0, b"hello"), (b"ef", 5, b"xyz")])
    )


def test_ids(archive):
    assert archive.ids() == ["last", "abcd", "ef"]
    assert len(archive) == 3


def test_read_each_resource(archive):
    assert archive.read("abcd") == b"hello"
    assert archive.read("ef") == b"xyz"
    assert archive.read(b"last") == b"tail!"


def test_span_is_absolute(archive):
    position, length = archive.span("ef")
    assert archive.data[position:position + length] == b"xyz"
    assert position == archive.data_offset + 5


def test_find_and_contains(archive):
    assert archive.find("ef") == 2
    assert "abcd" in archive
    assert "zzzz" not in archive


def test_find_missing(archive):
    with pytest.raises(KeyError):
        archive.find("none")
    with pytest.raises(KeyError):
        archive.read("none")


def test_next_resource(archive):
    assert archive.next_resource(0) == 2
    assert archive.next_resource(5) == 0
    assert archive.next_resource(8) is None


def test_lengths_cover_data(archive):
    total = sum(archive.span(name)[1] for name in archive.ids())
    assert archive.data_offset + total == archive.size


def test_from_file(tmp_path):
    path = tmp_path / "game.res"
    path.write_bytes(_archive([(b"one", 0, b"payload")]))
    resources = ResourceFile.from_file(str(path))
    assert resources.read("one") == b"payload"


def test_truncated_header():
    with pytest.raises(ValueError):
        ResourceFile(b"\x01\x02")


def test_truncated_table():
    with pytest.raises(ValueError):
        ResourceFile(struct.pack("<IH", 100, 3) + b"abcd")


def test_resource_past_end():
    data = bytearray(_archive([(b"one", 0, b"payload")]))
    data[0:4] = struct.pack("<I", len(data) + 10)
    with pytest.raises(ValueError):
        ResourceFile(bytes(data)).read("one")