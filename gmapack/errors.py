from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    NOT_WHITELISTED = "not_whitelisted"
    IGNORED = "ignored"
    DUPLICATE_PATH = "duplicate_path"
    NOT_FOUND = "not_found"
    INVALID_TYPE = "invalid_type"
    INVALID_TAG = "invalid_tag"
    INVALID_VALUE = "invalid_value"
    MALFORMED_CONTAINER = "malformed_container"
    IO_FAILURE = "io_failure"
    NOT_OPEN = "not_open"
    ALREADY_OPEN = "already_open"


class AddonError(Exception):
    """Base class for gmapack-specific errors."""

    kind: ErrorKind


# Admission
class NotWhitelisted(AddonError):
    kind = ErrorKind.NOT_WHITELISTED


class Ignored(AddonError):
    kind = ErrorKind.IGNORED


# Model consistency
class DuplicatePath(AddonError):
    kind = ErrorKind.DUPLICATE_PATH


class NotFound(AddonError):
    kind = ErrorKind.NOT_FOUND


class InvalidType(AddonError):
    kind = ErrorKind.INVALID_TYPE


class InvalidTag(AddonError):
    kind = ErrorKind.INVALID_TAG


# Text that cannot be stored as a NUL-terminated string
class InvalidValue(AddonError, ValueError):
    kind = ErrorKind.INVALID_VALUE


# Container structure
class MalformedContainer(AddonError):
    kind = ErrorKind.MALFORMED_CONTAINER


class ChecksumMismatch(MalformedContainer):
    pass


class IOFailure(AddonError):
    """Backing store failure; ``written`` counts bytes committed before it."""

    kind = ErrorKind.IO_FAILURE

    def __init__(self, message: str, written: int = 0):
        super().__init__(message)
        self.written = written
