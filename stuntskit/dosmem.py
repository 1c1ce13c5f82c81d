"""Paragraph-granular DOS memory manager with best-fit allocation.

Freed blocks are filled with 0xCC (when backing memory is given) and merged
with neighbouring free blocks.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import MutableSequence

PARAGRAPH_SIZE = 16
FILL_BYTE = 0xCC


class DosMemoryError(Exception):
    """A DOS memory service failed."""


class NotEnoughMemory(DosMemoryError):
    """A request could not be satisfied; ``available`` holds the usable size in paragraphs."""

    def __init__(self, available: int, message: str | None = None) -> None:
        super().__init__(message or f"not enough memory ({available} paragraphs available)")
        self.available = available


class NoSpaceBehind(NotEnoughMemory):
    """A block cannot grow because no free block follows it."""

    def __init__(self) -> None:
        super().__init__(0, "no free block behind the memory block")


class UnknownSegment(DosMemoryError):
    """The segment is not the start of a managed block."""


class AlreadyFree(DosMemoryError):
    """The block at the segment is not allocated."""


@dataclass
class Chunk:
    """A run of paragraphs, relative to the managed base segment."""

    used: bool
    start: int
    count: int


def _is_segment_address(segment: int) -> bool:
    return 0 <= segment <= 0xFFFF and segment % 0x10 == 0


class DosMemory:
    """Manages ``size`` bytes of memory starting at segment ``base``."""

    def __init__(self, base: int, size: int, memory: MutableSequence[int] | None = None) -> None:
        if not _is_segment_address(base):
            raise ValueError(f"not a segment address: 0x{base:X}")
        if size < 0:
            raise ValueError(f"negative size: {size}")
        self.base = base
        self.size = size
        self.max_paragraphs = size // PARAGRAPH_SIZE
        if memory is not None:
            end = (base + self.max_paragraphs) * PARAGRAPH_SIZE
            if len(memory) < end:
                raise ValueError("backing memory is smaller than the managed area")
        self._memory = memory
        self._chunks: list[Chunk] = [Chunk(used=False, start=0, count=self.max_paragraphs)]

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        """Copies of the current chunk list, in address order."""
        return tuple(replace(chunk) for chunk in self._chunks)

    def _check(self) -> None:
        if not self.validate():
            raise DosMemoryError("chunk sizes do not add up to the managed size")

    def _index_of(self, chunk: Chunk) -> int:
        return next(i for i, c in enumerate(self._chunks) if c is chunk)

    def _find_chunk(self, segment: int) -> Chunk:
        for chunk in self._chunks:
            if segment == self.base + chunk.start:
                return chunk
        raise UnknownSegment(f"unknown segment: 0x{segment:04X}")

    def _cleanup(self, chunk: Chunk) -> None:
        if self._memory is None:
            return
        begin = (self.base + chunk.start) * PARAGRAPH_SIZE
        length = chunk.count * PARAGRAPH_SIZE
        self._memory[begin:begin + length] = bytes([FILL_BYTE]) * length

    def validate(self) -> bool:
        """True when the chunk sizes add up to the managed paragraph count."""
        return sum(chunk.count for chunk in self._chunks) == self.max_paragraphs

    def largest_free(self) -> int:
        """Size in paragraphs of the largest free chunk, 0 if none is free."""
        return max((chunk.count for chunk in self._chunks if not chunk.used), default=0)

    def allocate(self, paragraphs: int) -> int:
        """Allocate a block of paragraphs; returns its segment."""
        if paragraphs < 0:
            raise ValueError(f"negative size: {paragraphs}")
        self._check()
        candidates = [c for c in self._chunks if not c.used and c.count >= paragraphs]
        if not candidates:
            raise NotEnoughMemory(self.largest_free())
        best = min(candidates, key=lambda chunk: chunk.count)
        rest = best.count - paragraphs
        if rest > 0:
            new_chunk = Chunk(used=True, start=best.start, count=paragraphs)
            best.start = new_chunk.start + new_chunk.count
            best.count = rest
            self._chunks.insert(self._index_of(best), new_chunk)
            return self.base + new_chunk.start
        best.used = True
        return self.base + best.start

    def reallocate(self, segment: int, paragraphs: int) -> None:
        """Resize the block at ``segment`` in place."""
        if paragraphs < 0:
            raise ValueError(f"negative size: {paragraphs}")
        self._check()
        chunk = self._find_chunk(segment)
        if not chunk.used:
            raise AlreadyFree(f"segment 0x{segment:04X} is not allocated")
        if chunk.count == paragraphs:
            return
        index = self._index_of(chunk)
        if chunk.count > paragraphs:
            kept = Chunk(used=True, start=chunk.start, count=paragraphs)
            self._chunks.insert(index, kept)
            chunk.start = kept.start + kept.count
            chunk.count -= paragraphs
            chunk.used = False
            return
        extend = paragraphs - chunk.count
        following = self._chunks[index + 1] if index + 1 < len(self._chunks) else None
        if following is None or following.used:
            raise NoSpaceBehind()
        if following.count < extend:
            raise NotEnoughMemory(chunk.count + following.count)
        following.start += extend
        following.count -= extend
        chunk.count += extend

    def free(self, segment: int) -> None:
        """Release the block at ``segment``."""
        self._check()
        chunk = self._find_chunk(segment)
        if not chunk.used:
            raise AlreadyFree(f"segment 0x{segment:04X} is already free")
        chunk.used = False
        self._cleanup(chunk)
        self.combine_free_chunks()

    def combine_free_chunks(self) -> None:
        """Merge every run of adjacent free chunks into one."""
        self._check()
        merged: list[Chunk] = []
        for chunk in self._chunks:
            if merged and not chunk.used and not merged[-1].used:
                merged[-1].count += chunk.count
            else:
                merged.append(chunk)
        self._chunks = merged
        self._check()

    def chunk_info(self) -> str:
        """Human-readable listing of all chunks."""
        lines = []
        for number, chunk in enumerate(self._chunks):
            lines.append(f"chunk: {number}")
            lines.append(f"  start: {chunk.start}")
            lines.append(f"  used: {'true' if chunk.used else 'false'}")
            lines.append(f"  count: {chunk.count}")
        return "\n".join(lines)