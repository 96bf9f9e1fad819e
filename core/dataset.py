# core/dataset.py
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import numpy as np

from core.channel_map import canonicalize
from core.errors import DecodeError, DecodeErrorKind, EmptyChannelSetError

DEFAULT_SAMPLE_RATE = 100.0
DEFAULT_EPOCH_SECONDS = 30


def coerce_epoch_seconds(value: Any) -> int:
    """Epoch length used for every computation: an integer, never below 1."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(seconds):
        return 1
    return max(1, int(seconds))


def coerce_sample_rate(value: Any) -> float:
    try:
        fs = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SAMPLE_RATE
    if not math.isfinite(fs) or fs <= 0:
        return DEFAULT_SAMPLE_RATE
    return fs


def _frozen_samples(samples: Any) -> np.ndarray:
    arr = np.asarray(samples if samples is not None else [], dtype=np.float64).ravel()
    if arr.flags.writeable:
        arr = arr.copy()
        arr.flags.writeable = False
    return arr


@dataclass(frozen=True)
class Channel:
    name: str
    raw_label: str
    sample_rate: float
    samples: np.ndarray = field(repr=False)

    def __post_init__(self):
        object.__setattr__(self, "sample_rate", coerce_sample_rate(self.sample_rate))
        object.__setattr__(self, "samples", _frozen_samples(self.samples))

    @property
    def n_samples(self) -> int:
        return int(self.samples.size)

    @classmethod
    def from_signal(cls, label: str, sample_rate: Any, samples: Any) -> "Channel":
        label = label or ""
        return cls(canonicalize(label), label, sample_rate, samples)


@dataclass(frozen=True)
class Dataset:
    """
    One loaded recording.
    - channels keep decoder order; canonical names may repeat.
    - epoch_seconds is always an integer >= 1.
    Replace wholesale on load; `with_epoch_seconds` shares the sample arrays.
    """
    channels: tuple[Channel, ...]
    epoch_seconds: int = DEFAULT_EPOCH_SECONDS
    source: str = ""

    def __post_init__(self):
        object.__setattr__(self, "channels", tuple(self.channels))
        object.__setattr__(self, "epoch_seconds", coerce_epoch_seconds(self.epoch_seconds))

    def __len__(self) -> int:
        return len(self.channels)

    @property
    def is_empty(self) -> bool:
        return not self.channels

    def with_epoch_seconds(self, seconds: Any) -> "Dataset":
        return replace(self, epoch_seconds=coerce_epoch_seconds(seconds))

    def first_with_samples(self) -> Channel | None:
        for ch in self.channels:
            if ch.n_samples:
                return ch
        return self.channels[0] if self.channels else None


def build_dataset(
    signals: Iterable[Mapping[str, Any]],
    *,
    epoch_seconds: Any = DEFAULT_EPOCH_SECONDS,
    default_sample_rate: Any = None,
    source: str = "",
) -> Dataset:
    """Assemble a dataset from decoded ``{label, sample_rate, samples}`` records.

    Raises ``EmptyChannelSetError`` when no records are given.
    """
    fallback_fs = coerce_sample_rate(default_sample_rate)
    channels = []
    for sig in signals:
        fs = sig.get("sample_rate")
        channels.append(
            Channel.from_signal(
                str(sig.get("label") or ""),
                fs if fs else fallback_fs,
                sig.get("samples"),
            )
        )
    if not channels:
        raise EmptyChannelSetError(f"no channels found in {source or 'recording'}")
    return Dataset(tuple(channels), epoch_seconds, source)


def _channel_from_json(entry: Mapping[str, Any], index: int) -> Channel:
    if not isinstance(entry, Mapping):
        raise DecodeError(f"channel #{index} is not an object", DecodeErrorKind.MALFORMED)
    raw = entry.get("rawLabel") or entry.get("label") or ""
    name = entry.get("name") or canonicalize(raw)
    fs = entry.get("sampleRate", entry.get("sample_rate"))
    try:
        return Channel(str(name), str(raw), fs, entry.get("samples") or [])
    except (TypeError, ValueError) as exc:
        raise DecodeError(f"channel #{index} has invalid samples: {exc}") from exc


def dataset_from_json(payload: Mapping[str, Any], *, epoch_seconds: Any = None, source: str = "") -> Dataset:
    if not isinstance(payload, Mapping) or not isinstance(payload.get("channels"), Sequence):
        raise DecodeError("JSON dataset needs a 'channels' list", DecodeErrorKind.MALFORMED)
    channels = tuple(_channel_from_json(entry, idx) for idx, entry in enumerate(payload["channels"]))
    if not channels:
        raise EmptyChannelSetError(f"no channels found in {source or 'JSON dataset'}")
    seconds = payload.get("epochSeconds") or epoch_seconds or DEFAULT_EPOCH_SECONDS
    return Dataset(channels, seconds, source)


def load_json_dataset(path: str | Path, *, epoch_seconds: Any = None) -> Dataset:
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise DecodeError(f"cannot read {path.name}: {exc}", DecodeErrorKind.UNREADABLE) from exc
    except ValueError as exc:
        raise DecodeError(f"invalid JSON in {path.name}: {exc}", DecodeErrorKind.MALFORMED) from exc
    return dataset_from_json(payload, epoch_seconds=epoch_seconds, source=str(path))
