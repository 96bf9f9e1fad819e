from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from core.capture import CaptureTiming, DEFAULT_PREFIX
from core.capture_log import DEFAULT_CAPACITY
from core.composer import OUTPUT_SIZES, OutputSize, output_size
from core.dataset import DEFAULT_EPOCH_SECONDS, coerce_epoch_seconds
from core.export import FolderFallback
from core.raster import RenderStyle

MIN_AUTO_DELAY_MS = 100


@dataclass
class ViewerConfig:
    epoch_seconds: int = DEFAULT_EPOCH_SECONDS
    auto_delay_ms: int = 800
    settle_delay_ms: int = 350
    min_epoch_delay_ms: int = 50
    inter_file_delay_ms: int = 200
    output_size: str = "wide"
    prefix: str = DEFAULT_PREFIX
    log_capacity: int = DEFAULT_CAPACITY
    fallback_dir: str = ""
    background: str = "#000000"
    trace: str = "#ffffff"
    ini_path: Path | None = None

    @classmethod
    def load(cls, ini_path: str | Path | None = None) -> "ViewerConfig":
        cfg = cls()
        path = Path(ini_path or "config.ini")
        if path.exists():
            import configparser

            parser = configparser.ConfigParser()
            parser.read(path)
            epoch_section = parser["epoch"] if "epoch" in parser else None
            if epoch_section:
                cfg.epoch_seconds = coerce_epoch_seconds(
                    epoch_section.get("seconds", fallback=str(cfg.epoch_seconds))
                )

            capture_section = parser["capture"] if "capture" in parser else None
            if capture_section:
                for key in (
                    "auto_delay_ms",
                    "settle_delay_ms",
                    "min_epoch_delay_ms",
                    "inter_file_delay_ms",
                    "log_capacity",
                ):
                    try:
                        value = capture_section.getint(key, fallback=getattr(cfg, key))
                    except ValueError:
                        continue
                    if value >= 0:
                        setattr(cfg, key, value)
                size_name = capture_section.get("output_size", fallback=cfg.output_size).strip().lower()
                if size_name in OUTPUT_SIZES:
                    cfg.output_size = size_name
                prefix = capture_section.get("prefix", fallback=cfg.prefix).strip()
                if prefix:
                    cfg.prefix = prefix
                cfg.fallback_dir = capture_section.get("fallback_dir", fallback=cfg.fallback_dir).strip()

            render_section = parser["render"] if "render" in parser else None
            if render_section:
                background = render_section.get("background", fallback=cfg.background).strip()
                trace = render_section.get("trace", fallback=cfg.trace).strip()
                try:
                    RenderStyle(background, trace)
                except ValueError:
                    pass
                else:
                    cfg.background, cfg.trace = background, trace
        cfg.auto_delay_ms = max(MIN_AUTO_DELAY_MS, cfg.auto_delay_ms)
        cfg.log_capacity = max(1, cfg.log_capacity)
        cfg.ini_path = path
        return cfg

    def timing(self) -> CaptureTiming:
        return CaptureTiming(
            settle_delay_s=self.settle_delay_ms / 1000.0,
            capture_delay_s=max(MIN_AUTO_DELAY_MS, self.auto_delay_ms) / 1000.0,
            min_epoch_delay_s=self.min_epoch_delay_ms / 1000.0,
            inter_file_delay_s=self.inter_file_delay_ms / 1000.0,
        )

    def frame_size(self) -> OutputSize:
        return output_size(self.output_size)

    def render_style(self) -> RenderStyle:
        return RenderStyle(self.background, self.trace)

    def fallback_saver(self) -> FolderFallback:
        return FolderFallback(self.fallback_dir or Path.home() / "Downloads")

    def save(self) -> None:
        if self.ini_path is None:
            return
        import configparser

        parser = configparser.ConfigParser()
        parser["epoch"] = {"seconds": str(coerce_epoch_seconds(self.epoch_seconds))}
        parser["capture"] = {
            "auto_delay_ms": str(self.auto_delay_ms),
            "settle_delay_ms": str(self.settle_delay_ms),
            "min_epoch_delay_ms": str(self.min_epoch_delay_ms),
            "inter_file_delay_ms": str(self.inter_file_delay_ms),
            "output_size": self.output_size,
            "prefix": self.prefix,
            "log_capacity": str(self.log_capacity),
            "fallback_dir": self.fallback_dir,
        }
        parser["render"] = {
            "background": self.background,
            "trace": self.trace,
        }
        with self.ini_path.open("w") as fh:
            parser.write(fh)
