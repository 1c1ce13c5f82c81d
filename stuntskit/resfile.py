"""Resource archives: a table of four-character ids and offsets followed by data."""

from __future__ import annotations

import struct
from typing import Optional, Union

ResourceId = Union[str, bytes]

_HEADER = struct.Struct("<IH")
_ID_LENGTH = 4
_OFFSET = struct.Struct("<I")


def _normalize(resource_id: ResourceId) -> str:
    if isinstance(resource_id, bytes):
        resource_id = resource_id.decode("latin-1")
    return resource_id.split("\0", 1)[0]


class ResourceFile:
    """An in-memory resource archive."""

    def __init__(self, data: bytes) -> None:
        self.data = bytes(data)
        if len(self.data) < _HEADER.size:
            raise ValueError("resource file is too short for its header")
        self.size, count = _HEADER.unpack_from(self.data)
        self.data_offset = _HEADER.size + count * (_ID_LENGTH + _OFFSET.size)
        if len(self.data) < self.data_offset:
            raise ValueError("resource file is too short for its table")
        ids_begin = _HEADER.size
        offsets_begin = ids_begin + count * _ID_LENGTH
        self._ids = [
            _normalize(self.data[ids_begin + i * _ID_LENGTH:ids_begin + (i + 1) * _ID_LENGTH])
            for i in range(count)
        ]
        self._offsets = [
            offset for (offset,) in _OFFSET.iter_unpack(self.data[offsets_begin:self.data_offset])
        ]

    @classmethod
    def from_file(cls, path: str) -> ResourceFile:
        with open(path, "rb") as stream:
            return cls(stream.read())

    def ids(self) -> list[str]:
        """Resource ids in table order."""
        return list(self._ids)

    def find(self, resource_id: ResourceId) -> int:
        """Table index of the resource; raises KeyError when absent."""
        wanted = _normalize(resource_id)
        for index, name in enumerate(self._ids):
            if name == wanted:
                return index
        raise KeyError(wanted)

    def next_resource(self, offset: int) -> Optional[int]:
        """Index of the resource with the smallest offset above ``offset``, or None."""
        later = [(value, index) for index, value in enumerate(self._offsets) if value > offset]
        return min(later)[1] if later else None

    def span(self, resource_id: ResourceId) -> tuple[int, int]:
        """Absolute position and length of the resource's data."""
        index = self.find(resource_id)
        offset = self._offsets[index]
        following = self.next_resource(offset)
        if following is None:
            length = self.size - (self.data_offset + offset)
        else:
            length = self._offsets[following] - offset
        if length < 0:
            raise ValueError(f"resource {self._ids[index]!r} has a negative length")
        return self.data_offset + offset, length

    def read(self, resource_id: ResourceId) -> bytes:
        """Data of the resource."""
        position, length = self.span(resource_id)
        if position + length > len(self.data):
            raise ValueError(f"resource {_normalize(resource_id)!r} extends past the file end")
        return self.data[position:position + length]

    def __contains__(self, resource_id: object) -> bool:
        if not isinstance(resource_id, (str, bytes)):
            return False
        return _normalize(resource_id) in self._ids

    def __len__(self) -> int:
        return len(self._ids)