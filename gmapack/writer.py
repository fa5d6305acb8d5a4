from __future__ import annotations

import io
import zlib
from typing import BinaryIO, Optional

from .constants import GMA_MAGIC, GMA_VERSION
from .manifest import build_description_payload
from .model import Archive
from .records import (
    FileRecord,
    pack_cstr,
    pack_file_record,
    pack_header,
    pack_i32,
    pack_string_list,
    pack_u32,
)


# Layout (little endian):
# magic[4], version u8, origin_id u64, timestamp u64,
# required strings (NUL-terminated, empty string ends the list),
# title, description-json, author (NUL-terminated), addon_version i32,
# file table {index u32, path, size i64, crc32 u32} ... index 0,
# payloads in table order, crc32 u32 over everything before it.


def write_archive(
    f: BinaryIO,
    archive: Archive,
    *,
    origin_id: Optional[int] = None,
    timestamp: Optional[int] = None,
) -> int:
    """Serialize ``archive`` to ``f``; returns the number of bytes written.

    ``origin_id`` and ``timestamp`` override the values carried by the
    archive. Raises InvalidType/InvalidTag when the manifest is incomplete.
    """
    archive.validate()
    entries = archive.list_entries()

    out = bytearray()
    out += GMA_MAGIC
    out += pack_header(
        GMA_VERSION,
        archive.origin_id if origin_id is None else origin_id,
        archive.timestamp if timestamp is None else timestamp,
    )
    out += pack_string_list(archive.required)
    out += pack_cstr(archive.title)
    out += pack_cstr(
        build_description_payload(
            description=archive.description,
            addon_type=archive.type,
            tags=archive.tags,
        )
    )
    out += pack_cstr(archive.author)
    out += pack_i32(archive.addon_version)

    for i, entry in enumerate(entries, start=1):
        out += pack_file_record(FileRecord(index=i, path=entry.path, size=entry.size, crc=entry.crc))
    out += pack_u32(0)

    for entry in entries:
        out += entry.payload

    out += pack_u32(zlib.crc32(out) & 0xFFFFFFFF)
    f.write(out)
    return len(out)


def encode(archive: Archive, *, origin_id: Optional[int] = None, timestamp: Optional[int] = None) -> bytes:
    """Return the complete container image for ``archive``."""
    buf = io.BytesIO()
    write_archive(buf, archive, origin_id=origin_id, timestamp=timestamp)
    return buf.getvalue()
