from __future__ import annotations

import os
import zlib
from typing import Dict, List, Optional

from .constants import GMA_MAGIC, GMA_MIN_VERSION, GMA_VERSION
from .errors import ChecksumMismatch, MalformedContainer
from .manifest import parse_description_payload
from .model import Archive, ContentEntry
from .pathutil import norm_path
from .records import Cursor, FileRecord, read_file_record, read_header, read_string_list


def decode(data: bytes, *, verify: bool = True) -> Archive:
    """Parse a complete container image into an Archive.

    Entries keep file table order. Paths are taken as stored; the whitelist
    only gates entries added afterwards.

    Raises:
        MalformedContainer: bad magic or version, truncated fields, an
            inconsistent file table, or payloads longer than the data.
        ChecksumMismatch: with ``verify``, an entry CRC or a non-zero
            trailing CRC does not match.
    """
    if data[: len(GMA_MAGIC)] != GMA_MAGIC:
        raise MalformedContainer("Bad addon magic")
    cur = Cursor(data, offset=len(GMA_MAGIC))
    version, origin_id, timestamp = read_header(cur)
    if not GMA_MIN_VERSION <= version <= GMA_VERSION:
        raise MalformedContainer(f"Unsupported addon format version {version}")
    required = read_string_list(cur) if version > 1 else []

    title = cur.cstr()
    description, addon_type, tags = parse_description_payload(cur.cstr())
    author = cur.cstr()
    addon_version = cur.i32()

    records: List[FileRecord] = []
    seen = set()
    while True:
        rec = read_file_record(cur)
        if rec is None:
            break
        if rec.index != len(records) + 1:
            raise MalformedContainer(f"File index {rec.index} out of sequence (expected {len(records) + 1})")
        if rec.size < 0:
            raise MalformedContainer(f"Negative size for {rec.path}")
        if rec.path in seen:
            raise MalformedContainer(f"Duplicate path in file table: {rec.path}")
        seen.add(rec.path)
        records.append(rec)

    declared = sum(rec.size for rec in records)
    if declared > cur.remaining():
        raise MalformedContainer(
            f"File table declares {declared} payload bytes but only {cur.remaining()} remain"
        )

    entries: Dict[str, ContentEntry] = {}
    for rec in records:
        payload = cur.read_exact(rec.size)
        entry = ContentEntry(path=rec.path, payload=payload)
        if verify and entry.crc != rec.crc:
            raise ChecksumMismatch(f"CRC mismatch for {rec.path}")
        entries[rec.path] = entry

    body_end = cur.offset
    trailer_crc = cur.u32()
    # Older writers leave the trailing CRC as zero.
    if verify and trailer_crc != 0 and (zlib.crc32(data[:body_end]) & 0xFFFFFFFF) != trailer_crc:
        raise ChecksumMismatch("Archive CRC mismatch")

    return Archive(
        title=title,
        description=description,
        author=author,
        type=addon_type,
        tags=tags,
        entries=entries,
        origin_id=origin_id,
        timestamp=timestamp,
        required=required,
        addon_version=addon_version,
        format_version=version,
    )


class AddonReader:
    """Read-only access to an addon file on disk."""

    def __init__(self, path: str, *, verify: bool = True):
        self.path = path
        self.verify = verify
        self.archive: Optional[Archive] = None
        self.file_size: int = 0

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def open(self):
        if self.archive is not None:
            return
        with open(self.path, "rb") as f:
            data = f.read()
        self.file_size = len(data)
        self.archive = decode(data, verify=self.verify)

    def close(self):
        self.archive = None

    def list(self) -> List[ContentEntry]:
        if self.archive is None:
            raise RuntimeError("Archive not open")
        return self.archive.list_entries()

    def extract(self, entry: ContentEntry, out_path: str):
        if self.archive is None:
            raise RuntimeError("Archive not open")
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        with open(out_path, "wb") as wf:
            wf.write(entry.payload)

    def extract_all(self, outdir: str, paths: Optional[List[str]] = None) -> List[str]:
        """Write entries below ``outdir``; returns the files written.

        ``paths`` restricts extraction to the named entries.
        """
        wanted = None
        if paths:
            wanted = {norm_path(p) for p in paths}
        written: List[str] = []
        for entry in self.list():
            try:
                rel = norm_path(entry.path)
            except ValueError as exc:
                raise MalformedContainer(f"Refusing to extract {entry.path!r}: {exc}") from None
            if wanted is not None and rel not in wanted:
                continue
            dest = os.path.join(outdir, *rel.split("/"))
            self.extract(entry, dest)
            written.append(dest)
        return written
