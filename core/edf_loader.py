# core/edf_loader.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Protocol

import numpy as np
import pyedflib

from core.dataset import DEFAULT_EPOCH_SECONDS, Dataset, build_dataset, load_json_dataset
from core.errors import DecodeError, DecodeErrorKind

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class DecodeResult:
    """Either a decoded dataset or the reason decoding failed."""
    dataset: Optional[Dataset] = None
    error: Optional[DecodeError] = None

    @classmethod
    def ok(cls, dataset: Dataset) -> "DecodeResult":
        return cls(dataset=dataset)

    @classmethod
    def err(cls, error: DecodeError) -> "DecodeResult":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.dataset is not None

    @property
    def kind(self) -> Optional[DecodeErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> Dataset:
        if self.dataset is None:
            raise self.error or DecodeError("decoder produced no dataset")
        return self.dataset


class Decoder(Protocol):
    def decode(self, path: str | Path, *, epoch_seconds: Any = DEFAULT_EPOCH_SECONDS) -> DecodeResult:
        """Decode one recording file."""


class EdfDecoder:
    """Decode EDF/EDF+ files with pyedflib into a canonicalized dataset."""

    def decode(self, path: str | Path, *, epoch_seconds: Any = DEFAULT_EPOCH_SECONDS) -> DecodeResult:
        path = Path(path)
        try:
            reader = pyedflib.EdfReader(str(path))
        except FileNotFoundError as exc:
            return DecodeResult.err(DecodeError(f"{path.name}: {exc}", DecodeErrorKind.UNREADABLE))
        except OSError as exc:
            return DecodeResult.err(DecodeError(f"{path.name}: {exc}", DecodeErrorKind.UNSUPPORTED))
        try:
            signals = list(self._read_signals(reader))
        except (OSError, ValueError, IndexError) as exc:
            return DecodeResult.err(DecodeError(f"{path.name}: {exc}", DecodeErrorKind.MALFORMED))
        finally:
            reader.close()
        try:
            dataset = build_dataset(signals, epoch_seconds=epoch_seconds, source=str(path))
        except DecodeError as exc:
            return DecodeResult.err(exc)
        LOG.debug("Decoded %s: %d channels", path.name, len(dataset))
        return DecodeResult.ok(dataset)

    def _read_signals(self, reader) -> Iterator[Dict[str, Any]]:
        labels = reader.getSignalLabels()
        ns = reader.getNSamples()
        for raw_idx in range(reader.signals_in_file):
            n_samples = int(ns[raw_idx])
            if n_samples <= 0:
                continue
            fs = float(reader.getSampleFrequency(raw_idx))
            samples = np.asarray(reader.readSignal(raw_idx, start=0, n=n_samples), dtype=np.float64)
            yield {"label": labels[raw_idx], "sample_rate": fs, "samples": samples}


def load_recording(
    path: str | Path,
    *,
    epoch_seconds: Any = DEFAULT_EPOCH_SECONDS,
    decoder: Optional[Decoder] = None,
) -> DecodeResult:
    """Load an EDF recording, or a pre-decoded ``.json`` dataset."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        try:
            return DecodeResult.ok(load_json_dataset(path, epoch_seconds=epoch_seconds))
        except DecodeError as exc:
            return DecodeResult.err(exc)
    decoder = decoder or EdfDecoder()
    return decoder.decode(path, epoch_seconds=epoch_seconds)
