# core/export.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

import numpy as np

from core.errors import ExportWriteError

LOG = logging.getLogger(__name__)

EDF_SUFFIX = ".edf"

FallbackSaver = Callable[[str, bytes], Optional[Path]]


def epoch_filename(prefix: str, epoch_index: int) -> str:
    """``{prefix}_{n}.png`` with a 1-based epoch number."""
    return f"{prefix}_{int(epoch_index) + 1}.png"


def file_stem(name: str) -> str:
    """Strip the last extension only (``a.b.edf`` -> ``a.b``)."""
    return Path(name).stem


def encode_png(frame: np.ndarray) -> bytes:
    """Encode an ``(h, w, 3)`` uint8 frame as PNG bytes using Qt's image writer."""
    from PySide6 import QtCore, QtGui

    arr = np.ascontiguousarray(frame, dtype=np.uint8)
    if arr.ndim != 3 or arr.shape[2] != 3:
        raise ValueError("frame must have shape (height, width, 3)")
    height, width = arr.shape[:2]
    image = QtGui.QImage(arr.data, width, height, arr.strides[0], QtGui.QImage.Format_RGB888)
    payload = QtCore.QByteArray()
    buffer = QtCore.QBuffer(payload)
    buffer.open(QtCore.QIODevice.WriteOnly)
    try:
        if not image.save(buffer, "PNG"):
            raise ExportWriteError("PNG encoding failed")
    finally:
        buffer.close()
    return bytes(payload.data())


@dataclass(frozen=True)
class RecordingFile:
    name: str
    handle: Path


class ExportSink(Protocol):
    """Directory operations the capture controllers rely on."""

    def list_files(self, directory: Path) -> Sequence[RecordingFile]:
        """Return the plain files directly inside ``directory``."""

    def get_or_create_subdirectory(self, directory: Path, name: str) -> Path:
        """Return ``directory/name``, creating it when missing."""

    def write(self, directory: Path, filename: str, data: bytes) -> Path:
        """Write ``data``; raise ``ExportWriteError`` on failure."""


class LocalDirectorySink:
    def list_files(self, directory: Path) -> list[RecordingFile]:
        directory = Path(directory)
        return [
            RecordingFile(entry.name, entry)
            for entry in directory.iterdir()
            if entry.is_file()
        ]

    def get_or_create_subdirectory(self, directory: Path, name: str) -> Path:
        target = Path(directory) / name
        target.mkdir(parents=True, exist_ok=True)
        return target

    def write(self, directory: Path, filename: str, data: bytes) -> Path:
        target = Path(directory) / filename
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise ExportWriteError(f"cannot write {target}: {exc}") from exc
        return target


class FolderFallback:
    """Save into a fixed folder without overwriting, like a browser download."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory).expanduser()

    def _free_path(self, filename: str) -> Path:
        candidate = self.directory / filename
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while candidate.exists():
            candidate = self.directory / f"{stem} ({counter}){suffix}"
            counter += 1
        return candidate

    def __call__(self, filename: str, data: bytes) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self._free_path(filename)
        target.write_bytes(data)
        return target


@dataclass(frozen=True)
class ExportResult:
    filename: str
    path: Optional[Path]
    fell_back: bool = False
    reason: str = ""


def export_image(
    data: bytes,
    filename: str,
    *,
    directory: Optional[Path],
    sink: ExportSink,
    fallback: Optional[FallbackSaver] = None,
) -> ExportResult:
    """Write into ``directory`` when possible, otherwise hand off to ``fallback``.

    ``ExportWriteError`` from the sink is absorbed when a fallback exists;
    the result then carries ``fell_back`` and the write error as ``reason``.
    """
    reason = "no target directory"
    if directory is not None:
        try:
            return ExportResult(filename, sink.write(directory, filename, data))
        except ExportWriteError as exc:
            if fallback is None:
                raise
            LOG.warning("Saving into %s failed, using fallback: %s", directory, exc)
            reason = str(exc)
    if fallback is None:
        raise ExportWriteError(f"no target directory for {filename}")
    try:
        path = fallback(filename, data)
    except OSError as exc:
        raise ExportWriteError(f"fallback save of {filename} failed: {exc}") from exc
    return ExportResult(filename, path, fell_back=True, reason=reason)
