from unittest import mock

import pytest

from stuntskit.tools import Stopwatch, absolute_address, print_seg_ofs_info, seg_ofs_info


def test_absolute_address_mcga():
    assert absolute_address(0xA000, 0) == 0xA0000


def test_absolute_address_equivalent_forms():
    assert absolute_address(0x1234, 0x5) == absolute_address(0x1230, 0x45)


@pytest.mark.parametrize("segment,offset", [(0xFFFF, 0xFFFF), (-1, 0), (0, 0x10000)])
def test_absolute_address_invalid(segment, offset):
    with pytest.raises(ValueError):
        absolute_address(segment, offset)


def test_info_normalized_address_has_no_extra_line():
    lines = seg_ofs_info(0x1000, 0).splitlines()
    assert lines[0] == "begin"
    assert lines[1] == "  original: 1000:0"
    assert len(lines) == 3


def test_info_unnormalized_address():
    text = seg_ofs_info(0x1234, 0x5)
    assert "  original: 1234:5" in text.splitlines()
    assert any(line.startswith("  biggest seg:") for line in text.splitlines())


def test_info_with_negative_distance():
    text = seg_ofs_info(0x1000, 0x20, -0x10)
    assert "end (distance = -10)" in text.splitlines()
    assert "  without seg change: 1000:10" in text.splitlines()


def test_info_distance_outside_memory():
    with pytest.raises(ValueError):
        seg_ofs_info(0, 0, -1)


def test_print_matches_info(capsys):
    print_seg_ofs_info(0x1234, 0x5, 0x20)
    assert capsys.readouterr().out == seg_ofs_info(0x1234, 0x5, 0x20) + "\n"


def test_stopwatch_duration():
    with mock.patch("time.perf_counter_ns", side_effect=[1_000_000_000, 3_500_000_000]):
        watch = Stopwatch()
        watch.start()
        watch.stop()
    assert watch.duration() == pytest.approx(2.5)


def test_stopwatch_context_manager_nonnegative():
    with Stopwatch() as watch:
        pass
    assert watch.duration() >= 0.0


def test_stopwatch_requires_stop():
    watch = Stopwatch()
    watch.start()
    with pytest.raises(RuntimeError):
        watch.duration()


def test_stopwatch_stop_without_start():
    with pytest.raises(RuntimeError):
        Stopwatch().stop()