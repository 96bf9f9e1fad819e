"""Unattended epoch capture: single-recording auto capture and folder batches.

Both controllers are coroutines driven by one asyncio loop. They never run
capture work in parallel; the only suspension points are the explicit delays.
Cancellation is cooperative: a ``CancellationToken`` is checked before each
file and each epoch, so an export that has already started always completes.
"""
from __future__ import annotations

import asyncio
import logging
import re
import threading
from dataclasses import dataclass, replace
from enum import Enum
from functools import cmp_to_key
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence

import numpy as np

from core.capture_log import DEFAULT_CAPACITY, CaptureLog
from core.composer import OUTPUT_SIZES, OutputSize, compose_frame
from core.dataset import DEFAULT_EPOCH_SECONDS, Dataset, coerce_epoch_seconds
from core.edf_loader import Decoder, load_recording
from core.epochs import total_epochs
from core.errors import (
    CaptureInProgressError,
    EnumerationError,
    NoDirectorySelectedError,
    PerFileBatchError,
)
from core.export import (
    EDF_SUFFIX,
    ExportResult,
    ExportSink,
    FallbackSaver,
    LocalDirectorySink,
    RecordingFile,
    encode_png,
    epoch_filename,
    export_image,
    file_stem,
)
from core.raster import DEFAULT_STYLE, RenderStyle
from core.schema import DEFAULT_SCHEMA, SchemaRow
from core.session import ViewerSession

LOG = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]
Encoder = Callable[[np.ndarray], bytes]

DEFAULT_PREFIX = "edf_epoch"


class CancellationToken:
    """Thread-safe flag handed to one capture run."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class CaptureTiming:
    settle_delay_s: float = 0.35
    capture_delay_s: float = 0.8
    min_epoch_delay_s: float = 0.05
    inter_file_delay_s: float = 0.2

    @property
    def epoch_delay_s(self) -> float:
        return max(self.min_epoch_delay_s, self.capture_delay_s)


def _fallback_message(result: ExportResult) -> str:
    return f"Saved {result.filename} to fallback {result.path}: {result.reason}"


class FrameExporter:
    """Compose, encode and write one epoch image."""

    def __init__(
        self,
        sink: Optional[ExportSink] = None,
        *,
        size: OutputSize = OUTPUT_SIZES["wide"],
        schema: Sequence[SchemaRow] = DEFAULT_SCHEMA,
        style: RenderStyle = DEFAULT_STYLE,
        encode: Encoder = encode_png,
        fallback: Optional[FallbackSaver] = None,
    ):
        self.sink = sink or LocalDirectorySink()
        self.size = size
        self.schema = tuple(schema)
        self.style = style
        self.encode = encode
        self.fallback = fallback

    def render(self, dataset: Dataset, epoch_index: int) -> np.ndarray:
        return compose_frame(
            dataset, epoch_index, self.size.width, self.size.height, self.schema, self.style
        )

    def export_epoch(
        self,
        dataset: Dataset,
        epoch_index: int,
        directory: Optional[Path],
        prefix: str = DEFAULT_PREFIX,
    ) -> ExportResult:
        data = self.encode(self.render(dataset, epoch_index))
        return export_image(
            data,
            epoch_filename(prefix, epoch_index),
            directory=directory,
            sink=self.sink,
            fallback=self.fallback,
        )


# ----- single recording -----


class CaptureState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"


class AutoCaptureController:
    """Export every epoch of the session's dataset from the current one onwards."""

    def __init__(
        self,
        session: ViewerSession,
        exporter: FrameExporter,
        *,
        timing: CaptureTiming = CaptureTiming(),
        directory: Optional[Path] = None,
        prefix: str = DEFAULT_PREFIX,
        sleep: SleepFunc = asyncio.sleep,
        on_epoch: Optional[Callable[[int], None]] = None,
        log_capacity: int = DEFAULT_CAPACITY,
    ):
        self.session = session
        self.exporter = exporter
        self.timing = timing
        self.directory = directory
        self.prefix = prefix
        self._sleep = sleep
        self._on_epoch = on_epoch
        self._state = CaptureState.IDLE
        self._token: Optional[CancellationToken] = None
        self.captured = 0
        self.failed = 0
        self.log = CaptureLog(log_capacity, logger=LOG)

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is CaptureState.RUNNING

    def cancel(self) -> None:
        token = self._token
        if token is not None:
            token.cancel()

    async def start(self, token: Optional[CancellationToken] = None) -> Optional[CaptureState]:
        """Run the capture loop; returns ``None`` when nothing was started.

        The returned state tells how the run ended (``IDLE`` after the last
        epoch, ``CANCELLED`` after a cancel). The controller itself is back to
        ``IDLE`` either way.
        """
        dataset = self.session.dataset
        if self.running or dataset is None:
            return None
        token = token or CancellationToken()
        self._token = token
        self._state = CaptureState.RUNNING
        self.session.set_capture_active(True)
        self.captured = 0
        self.failed = 0
        self.log.clear()
        try:
            total = self.session.total_epochs
            for idx in range(self.session.epoch_index, total):
                if token.cancelled:
                    break
                self.session.set_epoch(idx)
                if self._on_epoch is not None:
                    self._on_epoch(idx)
                await self._sleep(self.timing.settle_delay_s)
                try:
                    result = self.exporter.export_epoch(dataset, idx, self.directory, self.prefix)
                except Exception as exc:
                    self.failed += 1
                    self.log.push(f"Epoch {idx + 1} failed: {exc}", logging.WARNING)
                else:
                    self.captured += 1
                    if result.fell_back:
                        self.log.push(_fallback_message(result), logging.WARNING)
                await self._sleep(self.timing.capture_delay_s)
        finally:
            outcome = CaptureState.CANCELLED if token.cancelled else CaptureState.IDLE
            self._state = CaptureState.IDLE
            self._token = None
            self.session.set_capture_active(False)
        LOG.info(
            "Auto capture %s: %d exported, %d failed",
            "cancelled" if outcome is CaptureState.CANCELLED else "finished",
            self.captured,
            self.failed,
        )
        return outcome


# ----- folder batch -----


class BatchState(str, Enum):
    IDLE = "idle"
    ENUMERATING = "enumerating"
    PROCESSING_FILE = "processing_file"


class BatchStatus(str, Enum):
    COMPLETED = "Completed"
    STOPPED = "Stopped"
    ERROR = "Error"


@dataclass(frozen=True)
class BatchProgress:
    state: BatchState = BatchState.IDLE
    status: str = ""
    files_total: int = 0
    file_index: int = 0  # 1-based, 0 before the first file
    epoch_index: int = 0  # 1-based within the current file
    epoch_total: int = 0
    files_done: int = 0
    files_failed: int = 0


_INTEGER_RE = re.compile(r"[+-]?\d+")


def _integer_stem(name: str) -> Optional[int]:
    stem = file_stem(name)
    if _INTEGER_RE.fullmatch(stem):
        return int(stem)
    return None


def _compare_names(a: str, b: str) -> int:
    ia, ib = _integer_stem(a), _integer_stem(b)
    if ia is not None and ib is not None and ia != ib:
        return -1 if ia < ib else 1
    return (a > b) - (a < b)


def is_recording_file(name: str) -> bool:
    return name.lower().endswith(EDF_SUFFIX)


def sort_recording_files(files: Iterable[RecordingFile]) -> list[RecordingFile]:
    """Numeric order when both stems are integers, otherwise lexicographic."""
    return sorted(files, key=cmp_to_key(lambda a, b: _compare_names(a.name, b.name)))


class BatchCaptureController:
    """Capture every EDF file of a folder into ``<folder>/<stem>/<stem>_<n>.png``."""

    def __init__(
        self,
        exporter: FrameExporter,
        *,
        decoder: Optional[Decoder] = None,
        epoch_seconds: Any = DEFAULT_EPOCH_SECONDS,
        timing: CaptureTiming = CaptureTiming(),
        log_capacity: int = DEFAULT_CAPACITY,
        sleep: SleepFunc = asyncio.sleep,
        on_progress: Optional[Callable[[BatchProgress], None]] = None,
    ):
        self.exporter = exporter
        self.sink = exporter.sink
        self.decoder = decoder
        self.epoch_seconds = coerce_epoch_seconds(epoch_seconds)
        self.timing = timing
        self.log = CaptureLog(log_capacity, logger=LOG)
        self._sleep = sleep
        self._on_progress = on_progress
        self._progress = BatchProgress()
        self._token: Optional[CancellationToken] = None
        self.last_status: Optional[BatchStatus] = None

    @property
    def progress(self) -> BatchProgress:
        return self._progress

    @property
    def state(self) -> BatchState:
        return self._progress.state

    @property
    def running(self) -> bool:
        return self._token is not None

    def cancel(self) -> None:
        token = self._token
        if token is not None and not token.cancelled:
            token.cancel()
            self._push("Folder capture stopped by user")

    def _push(self, message: str, level: int = logging.INFO) -> None:
        self.log.push(message, level)

    def _update(self, **changes: Any) -> None:
        self._progress = replace(self._progress, **changes)
        if self._on_progress is not None:
            self._on_progress(self._progress)

    def _enumerate(self, directory: Path) -> list[RecordingFile]:
        try:
            entries = list(self.sink.list_files(directory))
        except OSError as exc:
            raise EnumerationError(f"cannot list {directory}: {exc}") from exc
        return sort_recording_files(e for e in entries if is_recording_file(e.name))

    async def run(self, directory: Optional[Path], token: Optional[CancellationToken] = None) -> BatchStatus:
        """Process the folder; the returned status is also kept in ``last_status``.

        Raises ``NoDirectorySelectedError`` without touching any state when
        ``directory`` is ``None``.
        """
        if directory is None:
            raise NoDirectorySelectedError()
        if self.running:
            raise CaptureInProgressError("A folder capture is already running.")
        token = token or CancellationToken()
        self._token = token
        self.log.clear()
        self._progress = BatchProgress()
        self._update(status="Starting")
        self._push("Starting folder capture")
        try:
            self._update(state=BatchState.ENUMERATING)
            files = self._enumerate(Path(directory))
            self._update(state=BatchState.PROCESSING_FILE, files_total=len(files))
            self._push(f"Found {len(files)} EDF file(s)")
            for idx, rec in enumerate(files):
                if token.cancelled:
                    break
                self._update(
                    file_index=idx + 1,
                    epoch_index=0,
                    epoch_total=0,
                    status=f"Processing {rec.name} ({idx + 1}/{len(files)})",
                )
                self._push(f"Processing file: {rec.name}")
                try:
                    finished = await self._process_file(Path(directory), rec, token)
                except Exception as exc:
                    failure = PerFileBatchError(rec.name, exc)
                    self._push(f"Error processing {failure}", logging.WARNING)
                    self._update(files_failed=self._progress.files_failed + 1)
                else:
                    if finished:
                        self._push(f"Finished file: {rec.name}")
                        self._update(files_done=self._progress.files_done + 1)
                    else:
                        self._push(f"Stopped in {rec.name} at epoch {self._progress.epoch_index}")
                await self._sleep(self.timing.inter_file_delay_s)
            status = BatchStatus.STOPPED if token.cancelled else BatchStatus.COMPLETED
        except Exception as exc:
            status = BatchStatus.ERROR
            self._push(f"Folder capture error: {exc}", logging.ERROR)
        finally:
            self._token = None
            if self._progress.state is not BatchState.IDLE:
                self._progress = replace(self._progress, state=BatchState.IDLE)
        if status is BatchStatus.COMPLETED:
            self._push("Folder capture completed")
        text = "Stopped by user" if status is BatchStatus.STOPPED else status.value
        self._update(state=BatchState.IDLE, status=text)
        self.last_status = status
        return status

    async def _process_file(self, directory: Path, rec: RecordingFile, token: CancellationToken) -> bool:
        dataset = load_recording(
            rec.handle, epoch_seconds=self.epoch_seconds, decoder=self.decoder
        ).unwrap()
        total = total_epochs(dataset, self.exporter.schema)
        self._update(epoch_total=total)
        stem = file_stem(rec.name)
        out_dir = self.sink.get_or_create_subdirectory(directory, stem)
        for epoch in range(total):
            if token.cancelled:
                return False
            self._update(epoch_index=epoch + 1, status=f"File {stem}: epoch {epoch + 1}/{total}")
            self._push(f"Rendering {stem} epoch {epoch + 1}/{total}")
            result = self.exporter.export_epoch(dataset, epoch, out_dir, stem)
            if result.fell_back:
                self._push(_fallback_message(result), logging.WARNING)
            await self._sleep(self.timing.epoch_delay_s)
        return True
