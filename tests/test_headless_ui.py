"""Headless smoke tests for the PySide6 capture window."""

from __future__ import annotations

import os

import numpy as np
import pytest

try:  # pragma: no cover - environment-dependent import guard
    from PySide6 import QtCore, QtWidgets
except ImportError as exc:  # pragma: no cover - skip when Qt dependencies missing
    pytest.skip(f"PySide6 import failed: {exc}", allow_module_level=True)

from config import ViewerConfig
from core.dataset import Channel, Dataset
from core.session import ViewerSession


# Ensure the tests run with Qt's offscreen platform.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="session")
def qt_app():
    """Provide a global QApplication for headless UI tests."""

    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication([])
    yield app
    app.quit()


def _process_events(app: QtWidgets.QApplication) -> None:
    app.processEvents(QtCore.QEventLoop.AllEvents, 100)


def _synthetic_dataset(epochs: int = 3, epoch_seconds: int = 30) -> Dataset:
    fs = 20.0
    t = np.arange(int(epochs * epoch_seconds * fs)) / fs
    channels = (
        Channel("C3-M2", "C3-M2", fs, np.sin(2.0 * np.pi * 1.5 * t)),
        Channel("Flow", "PTAF", fs / 2, np.cos(2.0 * np.pi * 0.25 * t[::2])),
        Channel("Saturation", "SpO2", 1.0, np.full(epochs * epoch_seconds, 96.0)),
    )
    return Dataset(channels, epoch_seconds=epoch_seconds)


def _make_window(tmp_path, **overrides):
    from ui import main_window as mw

    config = ViewerConfig(
        settle_delay_ms=0,
        auto_delay_ms=100,
        min_epoch_delay_ms=0,
        inter_file_delay_ms=0,
        fallback_dir=str(tmp_path / "fallback"),
        ini_path=tmp_path / "config.ini",
        **overrides,
    )
    session = ViewerSession(epoch_seconds=config.epoch_seconds)
    session.load(_synthetic_dataset())
    return mw.MainWindow(session, config=config)


def test_main_window_headless_smoke(qt_app, tmp_path):
    """Navigate epochs and grab the preview offscreen."""

    window = _make_window(tmp_path)
    window.show()
    window._refresh()
    _process_events(qt_app)

    assert window.epochLabel.text() == "Epoch 1 / 3"
    window.nextButton.click()
    window.nextButton.click()
    window.nextButton.click()
    _process_events(qt_app)
    assert window.session.epoch_index == 2
    assert window.epochLabel.text() == "Epoch 3 / 3"

    window.gotoEdit.setText("2")
    window.gotoButton.click()
    assert window.session.epoch_index == 1
    assert "30s" in window.rangeLabel.text()

    counts = window.preview.show_epoch(window.session.dataset, window.session.epoch_index)
    assert max(counts) == 600

    pixmap = window.grab()
    output_path = tmp_path / "headless_smoke.png"
    assert pixmap.save(str(output_path))
    assert output_path.exists() and output_path.stat().st_size > 0

    window.close()
    _process_events(qt_app)
    assert (tmp_path / "config.ini").exists()


def test_single_capture_writes_png(qt_app, tmp_path):
    window = _make_window(tmp_path, output_size="tall")
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    window._output_dir = out_dir
    window.session.set_epoch(2)

    window.captureButton.click()

    written = out_dir / "edf_epoch_3.png"
    assert written.exists()
    assert written.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
    assert "edf_epoch_3.png" in window.statusLabel.text()
    window.close()
    _process_events(qt_app)


def test_auto_capture_runs_in_background(qt_app, tmp_path):
    window = _make_window(tmp_path)
    out_dir = tmp_path / "auto"
    out_dir.mkdir()
    window._output_dir = out_dir
    window.session.set_epoch(1)

    window.autoButton.click()
    assert not window.openButton.isEnabled()

    timer = QtCore.QElapsedTimer()
    timer.start()
    while timer.elapsed() < 5000 and window._auto_future is None:
        _process_events(qt_app)
    while timer.elapsed() < 5000 and window._auto_future is not None:
        _process_events(qt_app)
    assert window._auto_future is None, "Timed out waiting for auto capture"

    assert sorted(p.name for p in out_dir.iterdir()) == ["edf_epoch_2.png", "edf_epoch_3.png"]
    assert window.openButton.isEnabled()
    assert window.autoButton.text() == "Auto Capture"
    window.close()
    _process_events(qt_app)


def _wait_for(app, predicate, timeout_ms: int = 5000) -> bool:
    timer = QtCore.QElapsedTimer()
    timer.start()
    while timer.elapsed() < timeout_ms:
        _process_events(app)
        if predicate():
            return True
    return False


def test_repeated_clicks_do_not_start_a_second_run(qt_app, tmp_path):
    window = _make_window(tmp_path)
    out_dir = tmp_path / "auto"
    out_dir.mkdir()
    window._output_dir = out_dir

    submitted = []
    submit = window._runner.submit

    def counting_submit(coro):
        submitted.append(coro)
        return submit(coro)

    window._runner.submit = counting_submit

    # Start, then stop before the loop thread has necessarily picked it up.
    window.autoButton.click()
    window.autoButton.click()
    window.batchButton.click()
    assert len(submitted) == 1
    assert not window.openButton.isEnabled()

    assert _wait_for(qt_app, lambda: window._auto_future is None), "Timed out waiting for auto capture"
    assert len(submitted) == 1
    assert window.openButton.isEnabled()
    assert window.autoButton.text() == "Auto Capture"
    assert window.statusLabel.text() == "Status: auto capture stopped"
    window.close()
    _process_events(qt_app)
