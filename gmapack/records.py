from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import InvalidValue, MalformedContainer


_U8 = struct.Struct("<B")
_U32 = struct.Struct("<I")
_I32 = struct.Struct("<i")
_U64 = struct.Struct("<Q")

# Identity header after the magic: version u8, origin_id u64, timestamp u64
_HEADER_STRUCT = struct.Struct("<BQQ")

# File table record tail (after the NUL-terminated path):
#  - size i64
#  - crc32 u32
_FILE_TAIL_STRUCT = struct.Struct("<qI")


@dataclass
class FileRecord:
    index: int  # 1-based; 0 terminates the table
    path: str
    size: int
    crc: int


class Cursor:
    """Bounds-checked reader over an in-memory byte image."""

    def __init__(self, data: bytes, offset: int = 0):
        self.data = bytes(data)
        self.offset = offset

    def remaining(self) -> int:
        return len(self.data) - self.offset

    def read_exact(self, n: int) -> bytes:
        if n < 0 or n > self.remaining():
            raise MalformedContainer(f"Unexpected end of data at offset {self.offset} (wanted {n} bytes)")
        b = self.data[self.offset : self.offset + n]
        self.offset += n
        return b

    def unpack(self, st: struct.Struct):
        return st.unpack(self.read_exact(st.size))

    def u8(self) -> int:
        return self.unpack(_U8)[0]

    def u32(self) -> int:
        return self.unpack(_U32)[0]

    def i32(self) -> int:
        return self.unpack(_I32)[0]

    def u64(self) -> int:
        return self.unpack(_U64)[0]

    def cstr(self) -> str:
        start = self.offset
        end = self.data.find(b"\x00", start)
        if end < 0:
            raise MalformedContainer(f"Unterminated string at offset {start}")
        self.offset = end + 1
        try:
            return self.data[start:end].decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedContainer(f"Invalid UTF-8 string at offset {start}: {exc}") from None


def pack_cstr(value: str) -> bytes:
    raw = value.encode("utf-8")
    if b"\x00" in raw:
        raise InvalidValue("Strings may not contain NUL characters")
    return raw + b"\x00"


def pack_header(version: int, origin_id: int, timestamp: int) -> bytes:
    return _HEADER_STRUCT.pack(version, origin_id, timestamp)


def read_header(cur: Cursor):
    """Returns: (version, origin_id, timestamp)"""
    return cur.unpack(_HEADER_STRUCT)


def pack_string_list(values: Iterable[str]) -> bytes:
    out = bytearray()
    for v in values:
        if not v:
            raise ValueError("Empty strings terminate the list and cannot be stored")
        out += pack_cstr(v)
    out += b"\x00"
    return bytes(out)


def read_string_list(cur: Cursor) -> List[str]:
    values: List[str] = []
    while True:
        v = cur.cstr()
        if not v:
            return values
        values.append(v)


def pack_u32(value: int) -> bytes:
    return _U32.pack(value)


def pack_i32(value: int) -> bytes:
    return _I32.pack(value)


def pack_file_record(rec: FileRecord) -> bytes:
    if rec.index <= 0:
        raise ValueError("file index must be 1-based")
    return _U32.pack(rec.index) + pack_cstr(rec.path) + _FILE_TAIL_STRUCT.pack(rec.size, rec.crc)


def read_file_record(cur: Cursor) -> Optional[FileRecord]:
    """Read one file table record; None at the 0 terminator."""
    index = cur.u32()
    if index == 0:
        return None
    path = cur.cstr()
    size, crc = cur.unpack(_FILE_TAIL_STRUCT)
    return FileRecord(index=index, path=path, size=size, crc=crc)
