"""
Positional reader over an immutable JT byte buffer.

Every multi-byte read honours the cursor's byte order, which starts out
big-endian and is flipped once by the file header.  Reads are bounds-checked
so a corrupt length never silently wraps into the wrong bytes.
"""

from __future__ import annotations

import struct
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from .errors import CursorError, MalformedDateError

BIG_ENDIAN = ">"
LITTLE_ENDIAN = "<"

BBox = Tuple[Tuple[float, float, float], Tuple[float, float, float]]


class ByteCursor:
    __slots__ = ("_data", "_pos", "byteorder")

    def __init__(self, data: bytes, *, byteorder: str = BIG_ENDIAN, position: int = 0) -> None:
        self._data = memoryview(bytes(data))
        self._pos = 0
        self.byteorder = byteorder
        self.seek(position)

    def __len__(self) -> int:
        return len(self._data)

    @property
    def position(self) -> int:
        return self._pos

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    @property
    def little_endian(self) -> bool:
        return self.byteorder == LITTLE_ENDIAN

    def set_little_endian(self) -> None:
        self.byteorder = LITTLE_ENDIAN

    def derive(self, data: bytes) -> "ByteCursor":
        """New cursor over ``data`` sharing this cursor's byte order."""
        return ByteCursor(data, byteorder=self.byteorder)

    def seek(self, position: int) -> None:
        if position < 0 or position > len(self._data):
            raise CursorError(f"Seek to {position} outside buffer of {len(self._data)} bytes")
        self._pos = position

    def skip(self, count: int) -> None:
        self.seek(self._pos + count)

    def read_bytes(self, count: int) -> bytes:
        if count < 0:
            raise CursorError(f"Negative read length {count} at offset {self._pos}")
        end = self._pos + count
        if end > len(self._data):
            raise CursorError(
                f"Read of {count} bytes at offset {self._pos} runs past end of buffer ({len(self._data)} bytes)"
            )
        chunk = self._data[self._pos:end].tobytes()
        self._pos = end
        return chunk

    def _unpack(self, fmt: str, size: int):
        raw = self.read_bytes(size)
        return struct.unpack(self.byteorder + fmt, raw)[0]

    def read_u8(self) -> int:
        return self._unpack("B", 1)

    def read_i8(self) -> int:
        return self._unpack("b", 1)

    def read_u16(self) -> int:
        return self._unpack("H", 2)

    def read_i16(self) -> int:
        return self._unpack("h", 2)

    def read_u32(self) -> int:
        return self._unpack("I", 4)

    def read_i32(self) -> int:
        return self._unpack("i", 4)

    def read_u64(self) -> int:
        return self._unpack("Q", 8)

    def read_i64(self) -> int:
        return self._unpack("q", 8)

    def read_f32(self) -> float:
        return self._unpack("f", 4)

    def read_f64(self) -> float:
        return self._unpack("d", 8)

    def read_array(self, code: str, count: int) -> Tuple:
        if count < 0:
            raise CursorError(f"Negative element count {count} at offset {self._pos}")
        size = struct.calcsize(code)
        raw = self.read_bytes(size * count)
        return struct.unpack(f"{self.byteorder}{count}{code}", raw)

    def read_fixed_string(self, length: int) -> str:
        return self.read_bytes(length).decode("ascii", errors="replace")

    def read_string(self) -> Optional[str]:
        count = self.read_i32()
        if count <= 0:
            return None
        return self.read_bytes(count).decode("ascii", errors="replace")

    def read_mb_string(self) -> Optional[str]:
        count = self.read_i32()
        if count <= 0:
            return None
        encoding = "utf-16-le" if self.little_endian else "utf-16-be"
        return self.read_bytes(count * 2).decode(encoding, errors="replace")

    def read_date_time(self) -> datetime:
        year, month, day, hour, minute, second = self.read_array("h", 6)
        try:
            return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
        except ValueError as exc:
            raise MalformedDateError(
                f"Invalid date {year:04d}-{month:02d}-{day:02d} {hour:02d}:{minute:02d}:{second:02d}: {exc}"
            ) from exc

    def read_coord_f32(self) -> Tuple[float, float, float]:
        x, y, z = self.read_array("f", 3)
        return (x, y, z)

    def read_bbox_f32(self) -> BBox:
        values = self.read_array("f", 6)
        return (tuple(values[:3]), tuple(values[3:]))

    def read_range(self) -> Tuple[int, int]:
        low, high = self.read_array("i", 2)
        return (low, high)

    def read_vec_i32(self) -> List[int]:
        return list(self.read_array("i", self.read_i32()))

    def read_vec_f32(self) -> List[float]:
        return list(self.read_array("f", self.read_i32()))

    def read_local_version(self, file_version: float) -> Optional[int]:
        """Per-element version number: absent before 9.0, I16 for 9.x, U8 from 10.0."""
        if file_version < 9.0:
            return None
        if file_version >= 10.0:
            return self.read_u8()
        return self.read_i16()
