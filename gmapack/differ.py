"""
In-place update of an addon file.

A freshly encoded image is compared with the bytes already on disk in fixed,
aligned blocks. Only blocks that differ (or lie past the old end) are
rewritten; a shorter image truncates the file afterwards. A failure midway
leaves old and new blocks mixed on disk and is reported, never rolled back.
"""

from __future__ import annotations

import io
import os
from dataclasses import dataclass
from typing import BinaryIO, List, Optional

from .constants import DEFAULT_BLOCK_SIZE
from .errors import IOFailure


@dataclass
class BlockWrite:
    """New bytes for the aligned block starting at ``offset``."""
    offset: int
    data: bytes

    def __repr__(self):
        return f"BLOCK(off={self.offset}, len={len(self.data)})"


def plan(existing: bytes, new_image: bytes, block_size: int = DEFAULT_BLOCK_SIZE) -> List[BlockWrite]:
    """List the block writes that turn ``existing`` into ``new_image``.

    Truncation is not part of the plan; callers cut the file to
    ``len(new_image)`` once the writes are done.
    """
    if block_size <= 0:
        raise ValueError("block_size must be positive")
    writes: List[BlockWrite] = []
    for off in range(0, len(new_image), block_size):
        block = new_image[off : off + block_size]
        if existing[off : off + len(block)] != block:
            writes.append(BlockWrite(offset=off, data=bytes(block)))
    return writes


def _sync(fh: BinaryIO) -> None:
    fh.flush()
    try:
        fd = fh.fileno()
    except (AttributeError, io.UnsupportedOperation):
        return  # in-memory stream
    os.fsync(fd)


def reconcile(
    fh: BinaryIO,
    new_image: bytes,
    *,
    existing: Optional[bytes] = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> int:
    """Make the seekable stream ``fh`` hold exactly ``new_image``.

    ``existing`` is the current content of ``fh``; it is read from the stream
    when omitted. Returns the number of bytes written (changed blocks plus
    the appended tail). Truncating to an empty image counts the removed bytes.

    Raises:
        IOFailure: a read, write or truncate failed; ``written`` holds the
            bytes committed before the failure.
    """
    written = 0
    try:
        if existing is None:
            fh.seek(0)
            existing = fh.read()
        if not new_image:
            if not existing:
                return 0
            fh.truncate(0)
            _sync(fh)
            return len(existing)

        writes = plan(existing, new_image, block_size)
        for w in writes:
            fh.seek(w.offset)
            fh.write(w.data)
            written += len(w.data)
        shrunk = len(existing) > len(new_image)
        if shrunk:
            fh.truncate(len(new_image))
        if writes or shrunk:
            _sync(fh)
    except OSError as exc:
        raise IOFailure(f"Update failed after {written} bytes: {exc}", written=written) from exc
    return written


def reconcile_path(path: str, new_image: bytes, *, block_size: int = DEFAULT_BLOCK_SIZE) -> int:
    """Reconcile the file at ``path`` with ``new_image``, creating it if needed."""
    try:
        fh = open(path, "r+b" if os.path.exists(path) else "w+b")
    except OSError as exc:
        raise IOFailure(f"Cannot open {path}: {exc}") from exc
    with fh:
        return reconcile(fh, new_image, block_size=block_size)
