"""Core package exports for the PSG epoch capture application."""

# Re-export commonly used modules for convenience.
from . import capture, capture_log, channel_map, composer, dataset, edf_loader, epochs, errors, export, raster, schema, session

__all__ = [
    "capture",
    "capture_log",
    "channel_map",
    "composer",
    "dataset",
    "edf_loader",
    "epochs",
    "errors",
    "export",
    "raster",
    "schema",
    "session",
]
