# core/epochs.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from core.dataset import Channel, Dataset, coerce_epoch_seconds
from core.schema import DEFAULT_SCHEMA, SchemaRow, resolve_row_channel

__all__ = [
    "EpochWindow",
    "EpochSpan",
    "epoch_window",
    "channel_epoch_window",
    "channel_epoch_count",
    "total_epochs",
    "epoch_span",
    "clamp_epoch",
    "parse_epoch_number",
]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class EpochWindow:
    """Sample range [start, start + count) of one epoch on one channel."""
    start: int
    count: int

    @property
    def stop(self) -> int:
        return self.start + self.count

    def slice(self, samples: np.ndarray) -> np.ndarray:
        """
        Return the samples covered by the window.
        Windows past the end of the buffer yield a short or empty view.
        """
        total = int(samples.size)
        if self.start >= total or self.count <= 0:
            return samples[:0]
        return samples[self.start:min(total, self.stop)]


def epoch_window(sample_rate: float, epoch_seconds: Any, epoch_index: int) -> EpochWindow:
    """
    Map an epoch index to sample indices at ``sample_rate``.
    count = max(1, round(fs * seconds)); start = round(index * seconds * fs).
    """
    if sample_rate <= 0:
        raise ValueError("sample_rate must be positive")
    if epoch_index < 0:
        raise ValueError("epoch_index must be non-negative")
    seconds = coerce_epoch_seconds(epoch_seconds)
    count = max(1, _round_half_up(sample_rate * seconds))
    start = _round_half_up(epoch_index * seconds * sample_rate)
    return EpochWindow(start, count)


def channel_epoch_window(channel: Channel, epoch_seconds: Any, epoch_index: int) -> EpochWindow:
    return epoch_window(channel.sample_rate, epoch_seconds, epoch_index)


def channel_epoch_count(channel: Optional[Channel], epoch_seconds: Any) -> int:
    if channel is None or channel.n_samples == 0:
        return 0
    count = channel_epoch_window(channel, epoch_seconds, 0).count
    return int(math.ceil(channel.n_samples / count))


def total_epochs(dataset: Optional[Dataset], schema: Sequence[SchemaRow] = DEFAULT_SCHEMA) -> int:
    """Number of navigable epochs: the longest resolved row decides."""
    if dataset is None or dataset.is_empty:
        return 0
    per_row = [
        channel_epoch_count(resolve_row_channel(dataset, row, idx), dataset.epoch_seconds)
        for idx, row in enumerate(schema)
    ]
    return max(per_row, default=0)


@dataclass(frozen=True)
class EpochSpan:
    start_s: float
    end_s: float
    channel: str | None = None
    sample_rate: float | None = None
    start_sample: int | None = None
    end_sample: int | None = None


def epoch_span(dataset: Dataset, epoch_index: int) -> EpochSpan:
    """Seconds covered by an epoch plus its sample range on the first populated channel."""
    seconds = dataset.epoch_seconds
    start_s = float(epoch_index * seconds)
    end_s = float((epoch_index + 1) * seconds)
    ch = dataset.first_with_samples()
    if ch is None:
        return EpochSpan(start_s, end_s)
    window = channel_epoch_window(ch, seconds, epoch_index)
    return EpochSpan(
        start_s,
        end_s,
        channel=ch.name or ch.raw_label or "channel0",
        sample_rate=ch.sample_rate,
        start_sample=window.start,
        end_sample=window.stop - 1,
    )


def clamp_epoch(index: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(int(index), total - 1))


def parse_epoch_number(text: Any, total: int) -> int:
    """Turn a 1-based epoch number typed by the user into a clamped 0-based index."""
    try:
        value = float(text)
    except (TypeError, ValueError):
        raise ValueError(f"not an epoch number: {text!r}") from None
    if not math.isfinite(value) or value < 1:
        raise ValueError("epoch number must be 1 or greater")
    return clamp_epoch(int(math.floor(value)) - 1, total)
