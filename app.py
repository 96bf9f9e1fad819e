# app.py
import asyncio
import logging
import os
import sys
from pathlib import Path

from config import ViewerConfig
from core.capture import BatchCaptureController, BatchStatus, FrameExporter
from core.errors import CaptureError


def _apply_overrides(cfg: ViewerConfig, *, epoch_seconds=None, output_size=None, delay_ms=None) -> ViewerConfig:
    if epoch_seconds is not None:
        cfg.epoch_seconds = epoch_seconds
    if output_size is not None:
        cfg.output_size = output_size
    if delay_ms is not None:
        cfg.auto_delay_ms = delay_ms
    return cfg


def run_batch(folder: str | Path, cfg: ViewerConfig) -> BatchStatus:
    """Capture every EDF file under ``folder`` without opening a window."""
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PySide6 import QtGui

    app = QtGui.QGuiApplication.instance() or QtGui.QGuiApplication(sys.argv[:1])  # noqa: F841 - keeps Qt image plugins alive
    exporter = FrameExporter(
        size=cfg.frame_size(),
        style=cfg.render_style(),
        fallback=cfg.fallback_saver(),
    )
    controller = BatchCaptureController(
        exporter,
        epoch_seconds=cfg.epoch_seconds,
        timing=cfg.timing(),
        log_capacity=cfg.log_capacity,
    )
    return asyncio.run(controller.run(Path(folder)))


def main(
    path=None,
    *,
    config_path: str | None = None,
    batch: str | None = None,
    epoch_seconds: int | None = None,
    output_size: str | None = None,
    delay_ms: int | None = None,
) -> int:
    cfg = _apply_overrides(
        ViewerConfig.load(config_path),
        epoch_seconds=epoch_seconds,
        output_size=output_size,
        delay_ms=delay_ms,
    )
    if batch:
        try:
            status = run_batch(batch, cfg)
        except CaptureError as exc:
            logging.getLogger(__name__).error("%s", exc)
            return 1
        return 0 if status is BatchStatus.COMPLETED else 1

    from PySide6 import QtWidgets
    from ui.main_window import MainWindow

    app = QtWidgets.QApplication(sys.argv)
    w = MainWindow(config=cfg)
    if path:
        w.load_file(path)
    w.resize(1400, 900)
    w.show()
    return app.exec()


def cli(argv=None) -> int:
    import argparse
    p = argparse.ArgumentParser(description="Browse PSG recordings and export epoch images.")
    p.add_argument("edf_path", nargs="?")
    p.add_argument("--config")
    p.add_argument("--batch", metavar="FOLDER", help="capture every .edf file in FOLDER and exit")
    p.add_argument("--epoch-seconds", type=int)
    p.add_argument("--output-size", choices=["wide", "tall"])
    p.add_argument("--delay-ms", type=int)
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return main(
        args.edf_path,
        config_path=args.config,
        batch=args.batch,
        epoch_seconds=args.epoch_seconds,
        output_size=args.output_size,
        delay_ms=args.delay_ms,
    )


if __name__ == "__main__":
    sys.exit(cli())
