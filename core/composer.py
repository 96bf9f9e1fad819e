# core/composer.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from core.dataset import Dataset
from core.epochs import channel_epoch_window
from core.raster import DEFAULT_STYLE, Region, RenderStyle, new_frame, rasterize
from core.schema import DEFAULT_SCHEMA, SchemaRow, resolve_row_channel

__all__ = ["OutputSize", "OUTPUT_SIZES", "output_size", "band_layout", "compose_frame"]


@dataclass(frozen=True)
class OutputSize:
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError("output size must be positive")


OUTPUT_SIZES: dict[str, OutputSize] = {
    "wide": OutputSize(1920, 1080),
    "tall": OutputSize(1080, 1920),
}


def output_size(name: str) -> OutputSize:
    try:
        return OUTPUT_SIZES[name.strip().lower()]
    except KeyError:
        raise ValueError(
            f"unknown output size {name!r}; expected one of {sorted(OUTPUT_SIZES)}"
        ) from None


def band_layout(height: int, rows: int) -> list[tuple[int, int]]:
    """Split ``height`` into ``rows`` uniform (y, h) bands.

    The last band absorbs the integer-division remainder so the bands tile
    the full height exactly.
    """
    rows = max(1, rows)
    band = max(1, height // rows)
    bands = []
    for idx in range(rows):
        y = idx * band
        h = height - y if idx == rows - 1 else band
        bands.append((y, max(0, h)))
    return bands


def compose_frame(
    dataset: Dataset,
    epoch_index: int,
    width: int,
    height: int,
    schema: Sequence[SchemaRow] = DEFAULT_SCHEMA,
    style: RenderStyle = DEFAULT_STYLE,
) -> np.ndarray:
    """Render every schema row of one epoch into a single RGB frame."""
    frame = new_frame(width, height, style)
    for row_idx, ((y, h), row) in enumerate(zip(band_layout(height, len(schema)), schema)):
        ch = resolve_row_channel(dataset, row, row_idx)
        if ch is None:
            continue
        window = channel_epoch_window(ch, dataset.epoch_seconds, epoch_index)
        rasterize(frame, Region(0, y, width, h), ch.samples, window, row.value_range, style)
    return frame
