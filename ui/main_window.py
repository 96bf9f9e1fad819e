# ui/main_window.py
from __future__ import annotations

import logging
from concurrent.futures import Future
from pathlib import Path
from typing import Optional

import pyqtgraph as pg
from PySide6 import QtCore, QtWidgets

from config import MIN_AUTO_DELAY_MS, ViewerConfig
from core.capture import (
    AutoCaptureController,
    BatchCaptureController,
    BatchProgress,
    BatchStatus,
    CancellationToken,
    CaptureState,
    FrameExporter,
)
from core.capture_log import CaptureLog
from core.errors import CaptureError, NoDirectorySelectedError
from core.session import ViewerSession
from ui.capture_runner import AsyncCaptureRunner
from ui.preview import SchemaPreview


LOG = logging.getLogger(__name__)

LOG_VIEW_HEIGHT = 120


class _CaptureSignals(QtCore.QObject):
    """Carries notifications from the capture loop thread to the GUI thread."""

    epochChanged = QtCore.Signal(int)
    batchProgress = QtCore.Signal(object)
    autoFinished = QtCore.Signal(object)
    batchFinished = QtCore.Signal(object)


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, session: ViewerSession | None = None, *, config: ViewerConfig | None = None):
        super().__init__()
        self.config = config or ViewerConfig()
        self.session = session or ViewerSession(epoch_seconds=self.config.epoch_seconds)
        self._output_dir: Optional[Path] = None
        self._signals = _CaptureSignals()
        self._runner = AsyncCaptureRunner()
        self._auto_future: Future | None = None
        self._batch_future: Future | None = None
        self._auto_token: CancellationToken | None = None
        self._batch_token: CancellationToken | None = None

        self.exporter = FrameExporter(
            size=self.config.frame_size(),
            schema=self.session.schema,
            style=self.config.render_style(),
            fallback=self.config.fallback_saver(),
        )
        self.auto_capture = AutoCaptureController(
            self.session,
            self.exporter,
            timing=self.config.timing(),
            prefix=self.config.prefix,
            on_epoch=self._signals.epochChanged.emit,
            log_capacity=self.config.log_capacity,
        )
        self.batch_capture = BatchCaptureController(
            self.exporter,
            epoch_seconds=self.session.epoch_seconds,
            timing=self.config.timing(),
            log_capacity=self.config.log_capacity,
            on_progress=self._signals.batchProgress.emit,
        )

        self.setWindowTitle("PSG Epoch Capture")
        self._build_ui()
        self._connect_signals()
        self._refresh()

    # ----- layout -----

    def _build_ui(self) -> None:
        central = QtWidgets.QWidget(self)
        outer = QtWidgets.QVBoxLayout(central)
        outer.setContentsMargins(8, 8, 8, 8)
        outer.setSpacing(6)

        controls = QtWidgets.QHBoxLayout()
        self.openButton = QtWidgets.QPushButton("Open…")
        self.epochSpin = QtWidgets.QSpinBox()
        self.epochSpin.setRange(1, 3600)
        self.epochSpin.setValue(self.session.epoch_seconds)
        self.epochSpin.setSuffix(" s")
        self.prevButton = QtWidgets.QPushButton("Prev Epoch")
        self.nextButton = QtWidgets.QPushButton("Next Epoch")
        self.gotoEdit = QtWidgets.QLineEdit()
        self.gotoEdit.setPlaceholderText("Go to epoch")
        self.gotoEdit.setFixedWidth(90)
        self.gotoButton = QtWidgets.QPushButton("Go")
        self.captureButton = QtWidgets.QPushButton("Capture")
        self.autoButton = QtWidgets.QPushButton("Auto Capture")
        self.delaySpin = QtWidgets.QSpinBox()
        self.delaySpin.setRange(MIN_AUTO_DELAY_MS, 60_000)
        self.delaySpin.setSingleStep(100)
        self.delaySpin.setValue(self.config.auto_delay_ms)
        self.delaySpin.setSuffix(" ms")
        self.folderButton = QtWidgets.QPushButton("Set Folder")
        self.batchButton = QtWidgets.QPushButton("Folder Auto Capture")
        self.folderLabel = QtWidgets.QLabel("")

        controls.addWidget(self.openButton)
        controls.addWidget(QtWidgets.QLabel("Epoch:"))
        controls.addWidget(self.epochSpin)
        for widget in (self.prevButton, self.nextButton, self.gotoEdit, self.gotoButton, self.captureButton, self.autoButton):
            controls.addWidget(widget)
        controls.addWidget(QtWidgets.QLabel("Delay:"))
        controls.addWidget(self.delaySpin)
        controls.addWidget(self.folderButton)
        controls.addWidget(self.batchButton)
        controls.addWidget(self.folderLabel)
        controls.addStretch(1)
        outer.addLayout(controls)

        self.statusLabel = QtWidgets.QLabel("Status:")
        self.rangeLabel = QtWidgets.QLabel("")
        self.filesLabel = QtWidgets.QLabel("")
        self.epochLabel = QtWidgets.QLabel("Open an EDF file (.edf) to begin.")
        for label in (self.statusLabel, self.rangeLabel, self.filesLabel, self.epochLabel):
            outer.addWidget(label)

        self.logView = QtWidgets.QPlainTextEdit()
        self.logView.setReadOnly(True)
        self.logView.setFixedHeight(LOG_VIEW_HEIGHT)
        self.logView.setMaximumBlockCount(self.config.log_capacity)
        self.logView.hide()
        outer.addWidget(self.logView)

        plot_widget = pg.GraphicsLayoutWidget()
        self.preview = SchemaPreview(plot_widget, self.session.schema)
        self.preview.set_colors(self.config.background, self.config.trace)
        scroll = QtWidgets.QScrollArea()
        scroll.setWidgetResizable(True)
        plot_widget.setMinimumHeight(sum(row.height_px for row in self.session.schema))
        scroll.setWidget(plot_widget)
        outer.addWidget(scroll, 1)

        self.setCentralWidget(central)

    def _connect_signals(self) -> None:
        self.openButton.clicked.connect(self._prompt_open_file)
        self.epochSpin.valueChanged.connect(self._on_epoch_seconds_changed)
        self.prevButton.clicked.connect(self._on_prev)
        self.nextButton.clicked.connect(self._on_next)
        self.gotoButton.clicked.connect(self._on_go_to_epoch)
        self.gotoEdit.returnPressed.connect(self._on_go_to_epoch)
        self.captureButton.clicked.connect(self._on_capture)
        self.autoButton.clicked.connect(self._toggle_auto_capture)
        self.delaySpin.valueChanged.connect(self._on_delay_changed)
        self.folderButton.clicked.connect(self._prompt_folder)
        self.batchButton.clicked.connect(self._toggle_batch_capture)
        self._signals.epochChanged.connect(self._on_capture_epoch)
        self._signals.batchProgress.connect(self._on_batch_progress)
        self._signals.autoFinished.connect(self._on_auto_capture_done)
        self._signals.batchFinished.connect(self._on_batch_done)

    # ----- state -> widgets -----

    def _refresh(self) -> None:
        dataset = self.session.dataset
        total = self.session.total_epochs
        if dataset is None:
            self.epochLabel.setText("Open an EDF file (.edf) to begin.")
            self.rangeLabel.setText("")
            self.preview.clear()
            return
        self.epochLabel.setText(f"Epoch {self.session.epoch_index + 1} / {total}")
        span = self.session.span()
        if span is not None:
            self.rangeLabel.setText(f"Epoch range: {span.start_s:g}s – {span.end_s:g}s")
        self.preview.show_epoch(dataset, self.session.epoch_index)

    def _show_error(self, title: str, message: str) -> None:
        QtWidgets.QMessageBox.critical(self, title, message)

    # ----- loading and navigation -----

    def _prompt_open_file(self) -> None:
        path, _ = QtWidgets.QFileDialog.getOpenFileName(
            self,
            caption="Open recording",
            filter="EDF Files (*.edf *.EDF);;JSON datasets (*.json);;All Files (*)",
        )
        if path:
            self.load_file(path)

    def load_file(self, path: str | Path) -> bool:
        try:
            dataset = self.session.load_file(path)
        except CaptureError as exc:
            LOG.warning("Failed to load %s: %s", path, exc)
            self._show_error("Failed to open", str(exc))
            return False
        LOG.info("Loaded %s with %d channels", path, len(dataset))
        self._refresh()
        return True

    def _on_epoch_seconds_changed(self, value: int) -> None:
        self.session.epoch_seconds = value
        self.config.epoch_seconds = self.session.epoch_seconds
        self.batch_capture.epoch_seconds = self.session.epoch_seconds
        self._refresh()

    def _on_prev(self) -> None:
        if self.session.dataset is not None:
            self.session.prev_epoch()
            self._refresh()

    def _on_next(self) -> None:
        if self.session.dataset is not None:
            self.session.next_epoch()
            self._refresh()

    def _on_go_to_epoch(self) -> None:
        if self.session.dataset is None:
            return
        try:
            self.session.go_to_epoch(self.gotoEdit.text())
        except ValueError:
            self._show_error("Go to epoch", "Enter an epoch number.")
            return
        self._refresh()

    # ----- capture -----

    def _on_capture(self) -> None:
        dataset = self.session.dataset
        if dataset is None:
            return
        try:
            result = self.exporter.export_epoch(
                dataset, self.session.epoch_index, self._output_dir, self.config.prefix
            )
        except CaptureError as exc:
            self._show_error("Capture failed", str(exc))
            return
        self.statusLabel.setText(f"Status: saved {result.path or result.filename}")

    def _on_delay_changed(self, value: int) -> None:
        self.config.auto_delay_ms = max(MIN_AUTO_DELAY_MS, int(value))
        timing = self.config.timing()
        self.auto_capture.timing = timing
        self.batch_capture.timing = timing

    def _toggle_auto_capture(self) -> None:
        if self._auto_future is not None:
            self.auto_capture.cancel()
            if self._auto_token is not None:
                self._auto_token.cancel()
            return
        if self.session.dataset is None or self._batch_future is not None:
            return
        self.auto_capture.directory = self._output_dir
        self.autoButton.setText("Stop")
        self._set_loading_enabled(False)
        self._auto_token = CancellationToken()
        future = self._runner.submit(self.auto_capture.start(self._auto_token))
        self._auto_future = future
        future.add_done_callback(self._signals.autoFinished.emit)

    def _set_loading_enabled(self, enabled: bool) -> None:
        self.openButton.setEnabled(enabled)
        self.epochSpin.setEnabled(enabled)

    def _on_capture_epoch(self, index: int) -> None:
        self._refresh()
        self._show_auto_log()

    def _on_auto_capture_done(self, future: Future) -> None:
        self._auto_future = None
        self._auto_token = None
        self.autoButton.setText("Auto Capture")
        self._set_loading_enabled(True)
        try:
            outcome = future.result()
        except Exception as exc:  # pragma: no cover - UI feedback
            LOG.warning("Auto capture aborted: %s", exc)
            self.statusLabel.setText(f"Status: auto capture failed: {exc}")
            return
        if outcome is CaptureState.CANCELLED:
            self.statusLabel.setText("Status: auto capture stopped")
        elif outcome is not None:
            self.statusLabel.setText(
                f"Status: auto capture finished ({self.auto_capture.captured} saved, "
                f"{self.auto_capture.failed} failed)"
            )
        self._show_auto_log()
        self._refresh()

    def _prompt_folder(self) -> None:
        folder = QtWidgets.QFileDialog.getExistingDirectory(self, "Select folder")
        if not folder:
            return
        self._output_dir = Path(folder)
        self.folderLabel.setText(f"Folder: {self._output_dir.name}")

    def _toggle_batch_capture(self) -> None:
        if self._batch_future is not None:
            self.batch_capture.cancel()
            if self._batch_token is not None:
                self._batch_token.cancel()
            self._append_log_view()
            return
        if self._auto_future is not None:
            return
        if self._output_dir is None:
            self._show_error("Folder capture", str(NoDirectorySelectedError()))
            return
        self.batch_capture.timing = self.config.timing()
        self.batchButton.setText("Stop Folder Capture")
        self.logView.clear()
        self.logView.show()
        self._batch_token = CancellationToken()
        future = self._runner.submit(self.batch_capture.run(self._output_dir, self._batch_token))
        self._batch_future = future
        future.add_done_callback(self._signals.batchFinished.emit)

    def _append_log_view(self, log: CaptureLog | None = None) -> None:
        log = self.batch_capture.log if log is None else log
        self.logView.setPlainText(log.text())
        bar = self.logView.verticalScrollBar()
        bar.setValue(bar.maximum())

    def _show_auto_log(self) -> None:
        if len(self.auto_capture.log):
            self.logView.show()
            self._append_log_view(self.auto_capture.log)

    def _on_batch_progress(self, progress: BatchProgress) -> None:
        self.statusLabel.setText(f"Status: {progress.status}")
        if progress.files_total:
            self.filesLabel.setText(
                f"Files: {progress.file_index}/{progress.files_total}, "
                f"Epoch: {progress.epoch_index}/{progress.epoch_total}"
            )
        self._append_log_view()

    def _on_batch_done(self, future: Future) -> None:
        self._batch_future = None
        self._batch_token = None
        self.batchButton.setText("Folder Auto Capture")
        try:
            status = future.result()
        except Exception as exc:  # pragma: no cover - UI feedback
            LOG.warning("Folder capture aborted: %s", exc)
            status = BatchStatus.ERROR
        self._append_log_view()
        if status is BatchStatus.ERROR:
            self._show_error("Folder capture", "An error occurred during folder capture.")

    # ----- teardown -----

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt override
        self.auto_capture.cancel()
        self.batch_capture.cancel()
        for token in (self._auto_token, self._batch_token):
            if token is not None:
                token.cancel()
        self._runner.close()
        try:
            self.config.save()
        except OSError as exc:  # pragma: no cover - best effort persistence
            LOG.warning("Failed to save config: %s", exc)
        super().closeEvent(event)
