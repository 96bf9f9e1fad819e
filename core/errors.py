"""Exception taxonomy shared by the loaders, exporters and capture controllers."""
from __future__ import annotations

from enum import Enum


class DecodeErrorKind(str, Enum):
    UNREADABLE = "unreadable"
    UNSUPPORTED = "unsupported"
    MALFORMED = "malformed"
    EMPTY = "empty"


class CaptureError(Exception):
    """Base class for every error raised by the capture pipeline."""


class DecodeError(CaptureError):
    """A recording could not be turned into a dataset."""

    def __init__(self, message: str, kind: DecodeErrorKind = DecodeErrorKind.MALFORMED):
        super().__init__(message)
        self.kind = DecodeErrorKind(kind)


class EmptyChannelSetError(DecodeError):
    def __init__(self, message: str = "decoder returned no channels"):
        super().__init__(message, DecodeErrorKind.EMPTY)


class ExportWriteError(CaptureError):
    """Writing an image into the target directory failed."""


class EnumerationError(CaptureError):
    """Listing the batch directory failed."""


class PerFileBatchError(CaptureError):
    """One file of a folder batch failed; the batch carries on."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"{name}: {cause}")
        self.name = name
        self.cause = cause


class NoDirectorySelectedError(CaptureError):
    def __init__(self, message: str = "Select a folder first."):
        super().__init__(message)


class CaptureInProgressError(CaptureError):
    def __init__(self, message: str = "A capture run is active; stop it before loading a new file."):
        super().__init__(message)
