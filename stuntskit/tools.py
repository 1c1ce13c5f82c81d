"""Segment:offset address helpers and a wall-clock stopwatch."""

from __future__ import annotations

import time
from typing import Optional


def _is_uint16(value: int) -> bool:
    return 0 <= value <= 0xFFFF


def _is_uint20(value: int) -> bool:
    return 0 <= value <= 0xFFFFF


def absolute_address(segment: int, offset: int) -> int:
    """Linear 20-bit address of ``segment:offset``."""
    if not (_is_uint16(segment) and _is_uint16(offset)):
        raise ValueError(f"invalid address {segment:X}:{offset:X}")
    address = segment * 0x10 + offset
    if not _is_uint20(address):
        raise ValueError(f"address {segment:X}:{offset:X} exceeds 20 bits")
    return address


def _segment_form(address: int) -> str:
    segment, rest = divmod(address, 0x10)
    if rest == 0:
        return f"  normalized: {segment:X}:0"
    return f"  biggest seg: {segment:X}:{rest:X}"


def seg_ofs_info(segment: int, offset: int, distance: int = 0) -> str:
    """Describe an address and, for a non-zero distance, the address that far away."""
    address = absolute_address(segment, offset)
    lines = ["begin", f"  original: {segment:X}:{offset:X}", f"  absolute: {address:X}"]
    if offset != 0:
        lines.append(_segment_form(address))
    if distance != 0:
        sign = "-" if distance < 0 else ""
        lines.append(f"end (distance = {sign}{abs(distance):X})")
        new_address = address + distance
        if not _is_uint20(new_address):
            raise ValueError(f"address {new_address:X} exceeds 20 bits")
        lines.append(f"  absolute: {new_address:X}")
        new_offset = offset + distance
        if _is_uint16(new_offset):
            lines.append(f"  without seg change: {segment:X}:{new_offset:X}")
        lines.append(_segment_form(new_address))
    return "\n".join(lines)


def print_seg_ofs_info(segment: int, offset: int, distance: int = 0) -> None:
    print(seg_ofs_info(segment, offset, distance))


class Stopwatch:
    """Measures the time between :meth:`start` and :meth:`stop`."""

    def __init__(self) -> None:
        self._start: Optional[int] = None
        self._stop: Optional[int] = None

    def start(self) -> None:
        self._start = time.perf_counter_ns()
        self._stop = None

    def stop(self) -> None:
        if self._start is None:
            raise RuntimeError("stopwatch was not started")
        self._stop = time.perf_counter_ns()

    def duration(self) -> float:
        """Seconds between the last start and stop."""
        if self._start is None or self._stop is None:
            raise RuntimeError("stopwatch was not started and stopped")
        return (self._stop - self._start) / 1e9

    def __enter__(self) -> Stopwatch:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()