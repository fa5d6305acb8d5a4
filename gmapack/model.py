from __future__ import annotations

import enum
import zlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .constants import (
    DEFAULT_ADDON_VERSION,
    DEFAULT_AUTHOR,
    DEFAULT_ORIGIN_ID,
    DEFAULT_TIMESTAMP,
    GMA_VERSION,
    MAX_TAGS,
    tag_exists,
    type_exists,
)
from .errors import DuplicatePath, Ignored, InvalidTag, InvalidType, InvalidValue, NotFound, NotWhitelisted
from .pathutil import norm_path
from . import whitelist


def _check_text(what: str, value: str) -> str:
    if "\x00" in value:
        raise InvalidValue(f"{what} may not contain NUL characters")
    return value


def _loose_key(path: str) -> str:
    # decoded archives keep file-table paths verbatim, which may not be normal
    try:
        return norm_path(path)
    except ValueError:
        return path


class Field(enum.Enum):
    """Manifest fields addressable through ``Archive.get``/``Archive.set``."""

    TITLE = "title"
    DESCRIPTION = "description"
    AUTHOR = "author"
    TYPE = "type"
    TAGS = "tags"

    @classmethod
    def parse(cls, name: str) -> "Field":
        try:
            return cls(name.strip().lower())
        except ValueError:
            valid = " ".join(f.value for f in cls)
            raise ValueError(f"Unknown field {name!r}; valid fields are: {valid}") from None


@dataclass(frozen=True)
class ContentEntry:
    path: str
    payload: bytes

    @property
    def size(self) -> int:
        return len(self.payload)

    @property
    def crc(self) -> int:
        return zlib.crc32(self.payload) & 0xFFFFFFFF


@dataclass
class Archive:
    """In-memory addon: manifest plus ordered content entries.

    The model holds no file handle or path; persistence goes through the
    codec and the diff writer.
    """

    title: str = ""
    description: str = ""
    author: str = DEFAULT_AUTHOR
    type: str = ""
    tags: List[str] = field(default_factory=list)
    entries: Dict[str, ContentEntry] = field(default_factory=dict)
    origin_id: int = DEFAULT_ORIGIN_ID
    timestamp: int = DEFAULT_TIMESTAMP
    required: List[str] = field(default_factory=list)
    addon_version: int = DEFAULT_ADDON_VERSION
    format_version: int = GMA_VERSION

    # entries

    def add_entry(self, path: str, data: bytes) -> ContentEntry:
        """Admit ``data`` under ``path``.

        Raises:
            InvalidValue: the path contains a NUL character.
            Ignored: the path is on the ignore list.
            NotWhitelisted: no wildcard accepts the path.
            DuplicatePath: an entry with this path already exists.
        """
        path = norm_path(_check_text("Path", path))
        if whitelist.is_ignored(path):
            raise Ignored(f"{path} is ignored")
        if whitelist.classify(path) is None:
            raise NotWhitelisted(f"{path} is not allowed by the whitelist")
        if self._find_key(path) is not None:
            raise DuplicatePath(f"{path} is already in the archive")
        entry = ContentEntry(path=path, payload=bytes(data))
        self.entries[path] = entry
        return entry

    def _find_key(self, path: str) -> Optional[str]:
        """Stored key for ``path``: exact match first, then by normalized form."""
        if path in self.entries:
            return path
        wanted = _loose_key(path)
        if wanted in self.entries:
            return wanted
        for key in self.entries:
            if _loose_key(key) == wanted:
                return key
        return None

    def remove_entry(self, path: str) -> ContentEntry:
        key = self._find_key(path)
        if key is None:
            raise NotFound(f"{path} is not in the archive")
        return self.entries.pop(key)

    def list_entries(self) -> List[ContentEntry]:
        return list(self.entries.values())

    def __contains__(self, path: str) -> bool:
        return self._find_key(path) is not None

    # manifest

    def set_type(self, value: str) -> None:
        if not type_exists(value):
            raise InvalidType(f"{value!r} is not a valid addon type")
        self.type = value

    def set_tags(self, values: Iterable[str]) -> List[str]:
        """Replace tags with the first two of ``values``.

        Returns the values that were dropped for exceeding the limit; an
        invalid tag raises InvalidTag and leaves the current tags untouched.
        """
        values = [v for v in values if v]
        kept, dropped = values[:MAX_TAGS], values[MAX_TAGS:]
        for tag in kept:
            if not tag_exists(tag):
                raise InvalidTag(f"{tag!r} is not a valid tag")
        self.tags = kept
        return dropped

    def get(self, fld: Field) -> Any:
        if fld is Field.TAGS:
            return list(self.tags)
        return getattr(self, fld.value)

    def set(self, fld: Field, value: Any) -> List[str]:
        """Assign a manifest field; returns dropped tags (empty for other fields)."""
        if fld is Field.TYPE:
            self.set_type(value)
        elif fld is Field.TAGS:
            if isinstance(value, str):
                value = value.split()
            return self.set_tags(value)
        else:
            text = "" if value is None else str(value)
            setattr(self, fld.value, _check_text(fld.value.capitalize(), text))
        return []

    def validate(self) -> None:
        """Raise when the manifest cannot be encoded."""
        for name in ("title", "description", "author"):
            _check_text(name.capitalize(), getattr(self, name))
        if not type_exists(self.type):
            raise InvalidType(f"{self.type!r} is not a valid addon type")
        if len(self.tags) > MAX_TAGS:
            raise InvalidTag(f"at most {MAX_TAGS} tags are allowed")
        for tag in self.tags:
            if not tag_exists(tag):
                raise InvalidTag(f"{tag!r} is not a valid tag")


def new_archive(
    title: str = "",
    description: str = "",
    addon_type: Optional[str] = None,
    tags: Optional[Iterable[str]] = None,
    author: Optional[str] = None,
) -> Archive:
    """Create an empty archive, validating type and tags up front."""
    archive = Archive()
    archive.set(Field.TITLE, title)
    archive.set(Field.DESCRIPTION, description)
    if author is not None:
        archive.set(Field.AUTHOR, author)
    if addon_type is not None:
        archive.set_type(addon_type)
    if tags is not None:
        archive.set_tags(tags)
    return archive
