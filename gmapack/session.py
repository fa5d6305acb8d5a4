from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from . import whitelist
from .constants import DEFAULT_BLOCK_SIZE
from .differ import reconcile_path
from .errors import AddonError, ErrorKind, IOFailure
from .model import Archive, ContentEntry, Field, new_archive
from .reader import decode
from .writer import encode


@dataclass
class Result:
    """Outcome of one session operation.

    ``kind`` names the failure when ``ok`` is False. ``warnings`` carries
    non-fatal notices (e.g. dropped tags) for the caller to show.
    """

    ok: bool
    value: Any = None
    kind: Optional[ErrorKind] = None
    message: str = ""
    warnings: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls, value: Any = None, warnings: Optional[List[str]] = None) -> "Result":
        return cls(ok=True, value=value, warnings=list(warnings or []))

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "", value: Any = None) -> "Result":
        return cls(ok=False, kind=kind, message=message, value=value)

    @classmethod
    def from_error(cls, exc: AddonError) -> "Result":
        value = exc.written if isinstance(exc, IOFailure) else None
        return cls.failure(exc.kind, str(exc), value=value)


def _io_failure(exc: OSError) -> Result:
    return Result.failure(ErrorKind.IO_FAILURE, str(exc), value=0)


def _tag_warning(dropped: List[str]) -> List[str]:
    if not dropped:
        return []
    return [f"More than two tags specified; only the first two are kept (dropped: {' '.join(dropped)})"]


def addon_filename(path: str) -> str:
    """Force the ``.gma`` extension onto ``path``."""
    base, _ext = os.path.splitext(path)
    return base + ".gma"


class AddonSession:
    """The caller's handle on one open addon and the file it is bound to.

    Nothing is written until ``persist``; ``close`` drops unsaved changes.
    """

    def __init__(self, *, block_size: int = DEFAULT_BLOCK_SIZE, verify: bool = True):
        self.block_size = block_size
        self.verify = verify
        self.archive: Optional[Archive] = None
        self.path: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.archive is not None

    def _require_open(self) -> Optional[Result]:
        if self.archive is None:
            return Result.failure(ErrorKind.NOT_OPEN, "No addon is open")
        return None

    def _require_closed(self) -> Optional[Result]:
        if self.archive is not None:
            return Result.failure(ErrorKind.ALREADY_OPEN, "An addon is already open; close it first")
        return None

    # lifecycle

    def create(
        self,
        path: Optional[str] = None,
        *,
        title: str = "",
        description: str = "",
        addon_type: Optional[str] = None,
        tags: Iterable[str] = (),
        author: Optional[str] = None,
    ) -> Result:
        """Start a new addon. With ``path`` the initial image is written at once.

        An existing file at the target path is never overwritten.
        """
        busy = self._require_closed()
        if busy:
            return busy
        target = addon_filename(path) if path else None
        if target and os.path.exists(target):
            return Result.failure(ErrorKind.IO_FAILURE, f"{target} already exists; load it instead")
        tags = list(tags)
        try:
            archive = new_archive(title=title, description=description, addon_type=addon_type, author=author)
            dropped = archive.set_tags(tags)
        except AddonError as exc:
            return Result.from_error(exc)
        self.archive = archive
        self.path = target
        warnings = _tag_warning(dropped)
        if target is None:
            return Result.success(0, warnings)
        res = self.persist()
        if not res:
            self.close()
            return res
        res.warnings = warnings + res.warnings
        return res

    def load(self, path: str) -> Result:
        busy = self._require_closed()
        if busy:
            return busy
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            return _io_failure(exc)
        res = self.load_bytes(data)
        if res:
            self.path = os.path.abspath(path)
        return res

    def load_bytes(self, data: bytes, path: Optional[str] = None) -> Result:
        busy = self._require_closed()
        if busy:
            return busy
        try:
            archive = decode(data, verify=self.verify)
        except AddonError as exc:
            return Result.from_error(exc)
        self.archive = archive
        self.path = path
        return Result.success(archive.list_entries())

    def close(self) -> Result:
        missing = self._require_open()
        if missing:
            return missing
        self.archive = None
        self.path = None
        return Result.success()

    # entries

    def add_entry(self, path: str, data: bytes) -> Result:
        missing = self._require_open()
        if missing:
            return missing
        try:
            return Result.success(self.archive.add_entry(path, data))
        except AddonError as exc:
            return Result.from_error(exc)
        except ValueError as exc:
            return Result.failure(ErrorKind.NOT_WHITELISTED, str(exc))

    def add_file(self, fs_path: str, archive_path: Optional[str] = None) -> Result:
        """Add a file from disk.

        Without ``archive_path`` the stored path is the whitelisted tail of
        ``fs_path`` (``.../addon/lua/init.lua`` becomes ``lua/init.lua``).
        """
        missing = self._require_open()
        if missing:
            return missing
        if archive_path is None:
            if whitelist.is_ignored(os.path.basename(fs_path)):
                return Result.failure(ErrorKind.IGNORED, f"{fs_path} is ignored")
            archive_path = whitelist.locate(fs_path)
            if archive_path is None:
                return Result.failure(ErrorKind.NOT_WHITELISTED, f"{fs_path} is not allowed by the whitelist")
        try:
            with open(fs_path, "rb") as f:
                data = f.read()
        except OSError as exc:
            return _io_failure(exc)
        return self.add_entry(archive_path, data)

    def add_folder(self, folder: str) -> Result:
        """Add every file below ``folder``.

        The value lists ``(fs_path, Result)`` pairs so callers can report
        rejected files individually.
        """
        missing = self._require_open()
        if missing:
            return missing
        if not os.path.isdir(folder):
            return Result.failure(ErrorKind.IO_FAILURE, f"{folder} is not a directory")
        outcomes = []
        for root, dirnames, filenames in os.walk(folder):
            dirnames.sort()
            for fn in sorted(filenames):
                full = os.path.join(root, fn)
                outcomes.append((full, self.add_file(full)))
        return Result.success(outcomes)

    def remove_entry(self, path: str) -> Result:
        missing = self._require_open()
        if missing:
            return missing
        try:
            return Result.success(self.archive.remove_entry(path))
        except AddonError as exc:
            return Result.from_error(exc)
        except ValueError as exc:
            return Result.failure(ErrorKind.NOT_FOUND, str(exc))

    def list_entries(self) -> Result:
        missing = self._require_open()
        if missing:
            return missing
        return Result.success(self.archive.list_entries())

    # manifest

    def get(self, fld: Field) -> Result:
        missing = self._require_open()
        if missing:
            return missing
        return Result.success(self.archive.get(fld))

    def set(self, fld: Field, value: Any) -> Result:
        missing = self._require_open()
        if missing:
            return missing
        try:
            dropped = self.archive.set(fld, value)
        except AddonError as exc:
            return Result.from_error(exc)
        return Result.success(self.archive.get(fld), _tag_warning(dropped))

    # persistence

    def encode(self) -> Result:
        missing = self._require_open()
        if missing:
            return missing
        try:
            return Result.success(encode(self.archive))
        except AddonError as exc:
            return Result.from_error(exc)
        except ValueError as exc:
            return Result.failure(ErrorKind.INVALID_VALUE, str(exc))

    def persist(self) -> Result:
        """Encode the addon and rewrite only the changed blocks of its file.

        The value is the number of bytes modified on disk. On IOFailure the
        value is the count written before the failure.
        """
        missing = self._require_open()
        if missing:
            return missing
        if self.path is None:
            return Result.failure(ErrorKind.IO_FAILURE, "The addon is not bound to a file")
        image = self.encode()
        if not image:
            return image
        try:
            changed = reconcile_path(self.path, image.value, block_size=self.block_size)
        except IOFailure as exc:
            return Result.from_error(exc)
        return Result.success(changed)
