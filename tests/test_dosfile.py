import pytest

from stuntskit.dosfile import DosFileError, DosFileManager


def test_create_write_read_round_trip(tmp_path):
    path = tmp_path / "game.dat"
    payload = b"stunts data"
    with DosFileManager() as files:
        handle = files.create(str(path), 0)
        assert files.write(handle, payload) == len(payload)
        assert files.seek(handle, 0, 0) == 0
        assert files.read(handle, len(payload)) == payload
        files.close(handle)
    assert path.read_bytes() == payload


def test_first_handle_is_top_of_stack(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"x")
    files = DosFileManager(8)
    handle = files.open(str(path), 0)
    assert handle == 8 - 1
    files.close(handle)


def test_closed_handle_is_reused(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"abc")
    files = DosFileManager(4)
    first = files.open(str(path), 0)
    files.close(first)
    second = files.open(str(path), 0)
    assert second == first
    files.close(second)


def test_seek_end_reports_size(tmp_path):
    path = tmp_path / "a.bin"
    content = b"0123456789"
    path.write_bytes(content)
    with DosFileManager() as files:
        handle = files.open(str(path), 2)
        assert files.seek(handle, 0, 2) == len(content)


def test_read_only_handle_rejects_write(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"abc")
    with DosFileManager() as files:
        handle = files.open(str(path), 0)
        with pytest.raises(DosFileError):
            files.write(handle, b"z")


def test_write_only_handle_rejects_read(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"abc")
    with DosFileManager() as files:
        handle = files.open(str(path), 1)
        with pytest.raises(DosFileError):
            files.read(handle, 1)


def test_invalid_mode(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"abc")
    with pytest.raises(DosFileError):
        DosFileManager().open(str(path), 3)


def test_missing_file(tmp_path):
    with pytest.raises(DosFileError):
        DosFileManager().open(str(tmp_path / "missing.bin"), 0)


def test_unknown_handle():
    files = DosFileManager()
    with pytest.raises(DosFileError):
        files.close(5)
    with pytest.raises(DosFileError):
        files.read(5, 1)


def test_unlink(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"abc")
    files = DosFileManager()
    files.unlink(str(path))
    assert not path.exists()
    with pytest.raises(DosFileError):
        files.unlink(str(path))


def test_handles_exhausted(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"abc")
    with DosFileManager(1) as files:
        files.open(str(path), 0)
        with pytest.raises(DosFileError):
            files.open(str(path), 0)


def test_exit_closes_all(tmp_path):
    path = tmp_path / "a.bin"
    path.write_bytes(b"abc")
    files = DosFileManager(2)
    with files:
        handle = files.open(str(path), 0)
    with pytest.raises(DosFileError):
        files.read(handle, 1)