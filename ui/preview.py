"""Live epoch preview: one pyqtgraph plot per schema row."""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pyqtgraph as pg
from PySide6 import QtWidgets

from core.dataset import Dataset
from core.epochs import channel_epoch_window
from core.schema import SchemaRow, resolve_row_channel


class SchemaPreview:
    """Stacked plots in schema order; rows are resolved again on every update."""

    def __init__(self, layout: pg.GraphicsLayoutWidget, schema: Sequence[SchemaRow]) -> None:
        self._layout = layout
        self.schema = tuple(schema)
        self.plots: list[pg.PlotItem] = []
        self.curves: list[pg.PlotDataItem] = []
        self.row_labels: list[pg.LabelItem] = []
        self._layout.ci.layout.setSpacing(0)
        self._layout.ci.layout.setContentsMargins(0, 0, 0, 0)
        self._build_rows()

    @property
    def widget(self) -> QtWidgets.QWidget:  # pragma: no cover - trivial
        return self._layout

    def set_colors(self, background: str, trace: str) -> None:
        self._layout.setBackground(background)
        for curve in self.curves:
            curve.setPen(pg.mkPen(trace, width=1.0))

    def clear(self) -> None:
        for curve in self.curves:
            curve.setData([], [])

    def show_epoch(self, dataset: Dataset | None, epoch_index: int) -> list[int]:
        """Draw ``epoch_index``; returns the sample count shown per row."""
        counts: list[int] = []
        if dataset is None:
            self.clear()
            return [0] * len(self.schema)
        for idx, row in enumerate(self.schema):
            curve = self.curves[idx]
            ch = resolve_row_channel(dataset, row, idx)
            if ch is None:
                curve.setData([], [])
                counts.append(0)
                continue
            window = channel_epoch_window(ch, dataset.epoch_seconds, epoch_index)
            values = window.slice(ch.samples)
            counts.append(int(values.size))
            curve.setData(np.arange(values.size, dtype=np.float64), values)
            plot = self.plots[idx]
            plot.setXRange(0, max(1, window.count - 1), padding=0)
            if row.value_range is None:
                plot.enableAutoRange(axis="y")
        return counts

    def _build_rows(self) -> None:
        grid = self._layout.ci.layout
        for idx, row in enumerate(self.schema):
            label = self._layout.addLabel(row=idx, col=0, text=row.label, justify="right")
            self.row_labels.append(label)
            plot = self._layout.addPlot(row=idx, col=1)
            for side in ("bottom", "left", "right", "top"):
                plot.showAxis(side, show=False)
            plot.setMenuEnabled(False)
            plot.setMouseEnabled(x=False, y=False)
            plot.hideButtons()
            if row.value_range is not None:
                lo, hi = row.value_range
                plot.disableAutoRange(axis="y")
                plot.setYRange(lo, hi, padding=0.02)
            curve = plot.plot([], [], pen=pg.mkPen("#ffffff", width=1.0))
            curve.setClipToView(True)
            curve.setDownsampling(auto=True, method="peak")
            grid.setRowFixedHeight(idx, float(row.height_px))
            self.plots.append(plot)
            self.curves.append(curve)
