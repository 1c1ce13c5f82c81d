"""Decoders for the game's packed resource format (run-length and variable-length passes)."""

from __future__ import annotations

import itertools
from typing import Mapping

RLE_TYPE = 1
VLE_TYPE = 2

_HEADER_SIZE = 4
_MULTI_PASS = 0x80
_RLE_ESC_MAX = 0x10
_RLE_SEQ_ESCAPE = 1
_VLE_ESC_MAX = 0x10
_VLE_ALPHABET = 0x100
_VLE_ESC_WIDTH = 0x40
_VLE_NUM_SYMBOLS = 0x80


class DecompressionError(ValueError):
    """The packed data is malformed or uses an unknown pack type."""


def _header(data: bytes) -> tuple[int, int]:
    if len(data) < _HEADER_SIZE:
        raise DecompressionError("truncated header")
    return data[0], int.from_bytes(data[1:4], "little")


def decompressed_size(data: bytes) -> int:
    """Final unpacked size stored in the leading header."""
    return _header(bytes(data))[1]


def rle_sequences(data: bytes, escape: int) -> bytes:
    """Undo the byte-sequence run pass: ``escape seq escape count`` repeats ``seq``."""
    data = bytes(data)
    out = bytearray()
    pos = 0
    try:
        while pos < len(data):
            cur = data[pos]
            pos += 1
            if cur != escape:
                out.append(cur)
                continue
            end = data.index(escape, pos)
            sequence = data[pos:end]
            total = ((data[end + 1] - 1) & 0xFF) + 1
            out += sequence * total
            pos = end + 2
    except (ValueError, IndexError):
        raise DecompressionError("truncated sequence run") from None
    return bytes(out)


def rle_singles(data: bytes, length: int, lookup: Mapping[int, int]) -> bytes:
    """Undo the single-byte run pass until ``length`` bytes are produced.

    ``lookup`` maps escape bytes to their 1-based position in the escape table.
    """
    src = iter(bytes(data))
    out = bytearray()
    try:
        while len(out) < length:
            cur = next(src)
            code = lookup.get(cur, 0)
            if code == 0:
                out.append(cur)
            elif code == 1:
                repeat = next(src)
                out += bytes([next(src)]) * repeat
            elif code == 3:
                repeat = next(src)
                repeat |= next(src) << 8
                out += bytes([next(src)]) * repeat
            else:
                repeat = (code - 1) & 0xFF
                out += bytes([next(src)]) * repeat
    except StopIteration:
        raise DecompressionError("truncated run-length data") from None
    return bytes(out[:length])


def decompress_rle(data: bytes) -> bytes:
    """Decode one run-length pass, header included."""
    data = bytes(data)
    _, length = _header(data)
    sub = data[_HEADER_SIZE:]
    if len(sub) < 5:
        raise DecompressionError("truncated run-length header")
    source_length = int.from_bytes(sub[0:3], "little")
    skip_sequences = bool(sub[4] & 0x80)
    escape_count = sub[4] & 0x7F
    if escape_count > _RLE_ESC_MAX:
        raise DecompressionError(f"too many escape codes: {escape_count}")
    escapes = sub[5:5 + escape_count]
    if len(escapes) < escape_count:
        raise DecompressionError("truncated escape table")
    body = sub[5 + escape_count:]
    lookup = {escape: index + 1 for index, escape in enumerate(escapes)}
    if not skip_sequences:
        if escape_count <= _RLE_SEQ_ESCAPE:
            raise DecompressionError("missing sequence escape code")
        body = rle_sequences(body[:source_length], escapes[_RLE_SEQ_ESCAPE])
    return rle_singles(body, length, lookup)


def decompress_vle(data: bytes) -> bytes:
    """Decode one variable-length (canonical prefix code) pass, header included."""
    data = bytes(data)
    _, length = _header(data)
    pos = _HEADER_SIZE
    if pos >= len(data):
        raise DecompressionError("truncated variable-length header")
    escape_count = data[pos]
    pos += 1
    additive = bool(escape_count & 0x80)
    escape_count &= 0x7F
    if escape_count > _VLE_ESC_MAX:
        raise DecompressionError(f"too many code widths: {escape_count}")
    width_counts = data[pos:pos + escape_count]
    if len(width_counts) < escape_count:
        raise DecompressionError("truncated width table")
    pos += escape_count

    esc1: list[int] = []
    esc2: list[int] = []
    codes = 0
    alphabet_length = 0
    for count in width_counts:
        esc1.append((alphabet_length - codes) & 0xFFFF)
        codes += count
        alphabet_length += count
        esc2.append(codes & 0xFFFF)
        codes *= 2

    alphabet = data[pos:pos + alphabet_length]
    if len(alphabet) < alphabet_length:
        raise DecompressionError("truncated alphabet")
    pos += alphabet_length

    symbols = bytearray(_VLE_ALPHABET)
    widths = bytearray([_VLE_ESC_WIDTH]) * _VLE_ALPHABET
    filled = 0
    letter = 0
    span = _VLE_NUM_SYMBOLS
    for width in range(1, min(escape_count, 8) + 1):
        for _ in range(width_counts[width - 1]):
            if filled + span > _VLE_ALPHABET:
                raise DecompressionError("code table overflow")
            symbols[filled:filled + span] = bytes([alphabet[letter]]) * span
            widths[filled:filled + span] = bytes([width]) * span
            filled += span
            letter += 1
        span >>= 1

    # The decoder reads ahead of the bits it consumes; pad the stream with zeros.
    src = itertools.chain(data[pos:], itertools.repeat(0))
    out = bytearray()
    word = (next(src) << 8) | next(src)
    bits_left = 8
    current = 0
    remaining = length + 1
    while remaining:
        code = word >> 8
        next_width = widths[code]
        if next_width > 8:
            code = word & 0xFF
            word >>= 8
            level = 7
            while True:
                if bits_left == 0:
                    code = next(src)
                    bits_left = 8
                word = ((word << 1) + (code >> 7)) & 0xFFFF
                code = (code << 1) & 0xFF
                bits_left -= 1
                level += 1
                if level >= escape_count:
                    raise DecompressionError("invalid variable-length code")
                if word < esc2[level]:
                    index = (word + esc1[level]) & 0xFFFF
                    if index >= alphabet_length:
                        raise DecompressionError("code outside the alphabet")
                    value = alphabet[index]
                    break
            current = (current + value) & 0xFF if additive else value
            out.append(current)
            remaining -= 1
            word = ((code << bits_left) | next(src)) & 0xFFFF
            next_width = 8 - bits_left
            bits_left = 8
        else:
            value = symbols[code]
            current = (current + value) & 0xFF if additive else value
            out.append(current)
            remaining -= 1
            if bits_left < next_width:
                word = (word << bits_left) & 0xFFFF
                next_width -= bits_left
                bits_left = 8
                word |= next(src)
        word = (word << next_width) & 0xFFFF
        bits_left -= next_width
    return bytes(out[:length])


_DECODERS = {RLE_TYPE: decompress_rle, VLE_TYPE: decompress_vle}


def decompress(data: bytes) -> bytes:
    """Decode a packed file, applying every compression pass in turn."""
    data = bytes(data)
    if not data:
        raise DecompressionError("empty input")
    passes = data[0]
    if passes & _MULTI_PASS:
        passes &= ~_MULTI_PASS & 0xFF
        current = data[_HEADER_SIZE:]
    else:
        passes = 1
        current = data
    for _ in range(passes):
        if not current:
            raise DecompressionError("missing compression pass")
        kind = current[0]
        decoder = _DECODERS.get(kind)
        if decoder is None:
            raise DecompressionError(f"invalid pack type: {kind}")
        current = decoder(current)
    return current