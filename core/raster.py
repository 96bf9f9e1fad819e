"""Waveform rasterization into RGB frame buffers.

Frames are ``(height, width, 3)`` uint8 numpy arrays. Each channel epoch is
drawn into a rectangular region as a one-pixel polyline over an opaque
background, using either a fixed physiological value range or symmetric
auto-scaling around the region's vertical centre.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from core.epochs import EpochWindow

__all__ = [
    "Region",
    "RenderStyle",
    "DEFAULT_STYLE",
    "parse_color",
    "new_frame",
    "trace_points",
    "clip_segments",
    "draw_polyline",
    "rasterize",
]

Color = tuple[int, int, int]

# Minimum luminance gap between trace and background (0..255 scale).
MIN_CONTRAST = 64.0

# Finite bound on trace y coordinates, far beyond any frame size.
_Y_LIMIT = 1e12


def parse_color(value: str | Sequence[int]) -> Color:
    """Accept ``#rgb`` / ``#rrggbb`` strings or an RGB triple."""
    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) == 3:
            text = "".join(ch * 2 for ch in text)
        if len(text) != 6:
            raise ValueError(f"invalid color: {value!r}")
        try:
            return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
        except ValueError:
            raise ValueError(f"invalid color: {value!r}") from None
    parts = tuple(int(v) for v in value)
    if len(parts) != 3 or any(v < 0 or v > 255 for v in parts):
        raise ValueError(f"invalid color: {value!r}")
    return parts  # type: ignore[return-value]


def _luminance(color: Color) -> float:
    r, g, b = color
    return 0.299 * r + 0.587 * g + 0.114 * b


@dataclass(frozen=True)
class RenderStyle:
    background: Color = (0, 0, 0)
    trace: Color = (255, 255, 255)

    def __post_init__(self):
        bg = parse_color(self.background)
        fg = parse_color(self.trace)
        if abs(_luminance(bg) - _luminance(fg)) < MIN_CONTRAST:
            raise ValueError("trace color does not contrast with the background")
        object.__setattr__(self, "background", bg)
        object.__setattr__(self, "trace", fg)


DEFAULT_STYLE = RenderStyle()


@dataclass(frozen=True)
class Region:
    x: int
    y: int
    width: int
    height: int

    def clipped(self, frame: np.ndarray) -> "Region":
        fh, fw = frame.shape[:2]
        x0 = max(0, self.x)
        y0 = max(0, self.y)
        x1 = min(fw, self.x + self.width)
        y1 = min(fh, self.y + self.height)
        return Region(x0, y0, max(0, x1 - x0), max(0, y1 - y0))


def new_frame(width: int, height: int, style: RenderStyle = DEFAULT_STYLE) -> np.ndarray:
    if width <= 0 or height <= 0:
        raise ValueError("frame size must be positive")
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[...] = style.background
    return frame


def trace_points(
    values: np.ndarray,
    width: int,
    height: int,
    value_range: Optional[tuple[float, float]] = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Pixel coordinates (relative to the region) of each sample.

    x pins the first and last sample to the left/right edges. y leaves a
    two pixel margin; fixed-range values outside the range are not clamped,
    so their y lies outside ``[0, height)``.
    """
    v = np.asarray(values, dtype=np.float64)
    n = v.size
    if n == 0:
        return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float64)
    v = np.where(np.isfinite(v), v, 0.0)

    idx = np.arange(n, dtype=np.float64)
    xs = np.floor(idx / max(1, n - 1) * (width - 1)).astype(np.int64)

    if value_range is not None:
        lo, hi = value_range
        t = (v - lo) / (hi - lo)
        ys_f = height - (t * (height - 4) + 2)
    else:
        norm = float(np.max(np.abs(v))) or 1.0
        ys_f = height / 2 - (v / norm) * (height / 2 - 2)
    return xs, np.clip(np.floor(ys_f), -_Y_LIMIT, _Y_LIMIT)


def clip_segments(
    x0: np.ndarray,
    y0: np.ndarray,
    x1: np.ndarray,
    y1: np.ndarray,
    width: int,
    height: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """Liang-Barsky clip of segments to the pixel box of a ``width x height`` region.

    Returns the clipped endpoints and a mask of segments that touch the box.
    Clipped endpoints stay on the original line, so slopes are preserved.
    """
    x0 = np.asarray(x0, dtype=np.float64)
    y0 = np.asarray(y0, dtype=np.float64)
    dx = np.asarray(x1, dtype=np.float64) - x0
    dy = np.asarray(y1, dtype=np.float64) - y0
    t0 = np.zeros_like(dx)
    t1 = np.ones_like(dx)
    keep = np.ones(dx.shape, dtype=bool)
    edges = (
        (-dx, x0 + 0.5),
        (dx, width - 0.5 - x0),
        (-dy, y0 + 0.5),
        (dy, height - 0.5 - y0),
    )
    with np.errstate(divide="ignore", invalid="ignore"):
        for p, q in edges:
            parallel = p == 0
            keep &= ~(parallel & (q < 0))
            r = np.where(parallel, 0.0, q / np.where(parallel, 1.0, p))
            t0 = np.where(~parallel & (p < 0), np.maximum(t0, r), t0)
            t1 = np.where(~parallel & (p > 0), np.minimum(t1, r), t1)
    keep &= t0 <= t1
    return x0 + t0 * dx, y0 + t0 * dy, x0 + t1 * dx, y0 + t1 * dy, keep


def draw_polyline(
    frame: np.ndarray,
    region: Region,
    xs: np.ndarray,
    ys: np.ndarray,
    color: Color,
) -> int:
    """Draw connected one-pixel segments; returns the number of pixels set.

    Segments are clipped to ``region`` before stepping, so a segment that
    leaves the region keeps its slope up to the edge.
    """
    if xs.size < 2:
        return 0
    x0, y0, x1, y1, keep = clip_segments(
        xs[:-1], ys[:-1], xs[1:], ys[1:], region.width, region.height
    )
    if not keep.any():
        return 0
    x0, y0, x1, y1 = x0[keep], y0[keep], x1[keep], y1[keep]
    dx = x1 - x0
    dy = y1 - y0
    steps = np.ceil(np.maximum(np.abs(dx), np.abs(dy))).astype(np.int64)
    counts = steps + 1
    seg = np.repeat(np.arange(steps.size), counts)
    offsets = np.arange(int(counts.sum())) - np.repeat(np.cumsum(counts) - counts, counts)
    frac = offsets / np.maximum(steps[seg], 1)
    px = np.floor(x0[seg] + dx[seg] * frac + 0.5).astype(np.int64)
    py = np.floor(y0[seg] + dy[seg] * frac + 0.5).astype(np.int64)

    inside = (px >= 0) & (px < region.width) & (py >= 0) & (py < region.height)
    if not inside.any():
        return 0
    frame[region.y + py[inside], region.x + px[inside]] = color
    return int(inside.sum())


def rasterize(
    frame: np.ndarray,
    region: Region,
    samples: np.ndarray,
    window: Optional[EpochWindow],
    value_range: Optional[tuple[float, float]] = None,
    style: RenderStyle = DEFAULT_STYLE,
) -> None:
    """Paint one channel epoch into ``region`` of ``frame``.

    Never raises for data problems: a missing window, an empty slice or a
    window past the end of ``samples`` leaves just the background.
    """
    target = region.clipped(frame)
    if target.width == 0 or target.height == 0:
        return
    frame[target.y:target.y + target.height, target.x:target.x + target.width] = style.background
    if window is None or samples is None:
        return
    values = window.slice(np.asarray(samples))
    if values.size == 0:
        return
    xs, ys = trace_points(values, region.width, region.height, value_range)
    # Offsets are computed against the requested region, then clipped to the frame.
    xs = xs + (region.x - target.x)
    ys = ys + (region.y - target.y)
    draw_polyline(frame, target, xs, ys, style.trace)
