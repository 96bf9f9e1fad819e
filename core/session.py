# core/session.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Sequence

from core.dataset import DEFAULT_EPOCH_SECONDS, Dataset, coerce_epoch_seconds
from core.edf_loader import Decoder, load_recording
from core.epochs import EpochSpan, clamp_epoch, epoch_span, parse_epoch_number, total_epochs
from core.errors import CaptureInProgressError
from core.schema import DEFAULT_SCHEMA, SchemaRow


class ViewerSession:
    """
    Live browsing state for one recording.
    - The dataset is replaced wholesale on load; loads are refused while a
      capture run holds the session.
    - epoch_index is 0-based and always within [0, total - 1] (0 when empty).
    """

    def __init__(
        self,
        *,
        schema: Sequence[SchemaRow] = DEFAULT_SCHEMA,
        epoch_seconds: Any = DEFAULT_EPOCH_SECONDS,
    ):
        self.schema = tuple(schema)
        self._epoch_seconds = coerce_epoch_seconds(epoch_seconds)
        self._dataset: Optional[Dataset] = None
        self._epoch_index = 0
        self._capture_active = False

    @property
    def dataset(self) -> Optional[Dataset]:
        return self._dataset

    @property
    def epoch_seconds(self) -> int:
        return self._epoch_seconds

    @epoch_seconds.setter
    def epoch_seconds(self, value: Any) -> None:
        self._epoch_seconds = coerce_epoch_seconds(value)
        if self._dataset is not None:
            self._dataset = self._dataset.with_epoch_seconds(self._epoch_seconds)
        self._epoch_index = clamp_epoch(self._epoch_index, self.total_epochs)

    @property
    def epoch_index(self) -> int:
        return self._epoch_index

    @property
    def total_epochs(self) -> int:
        return total_epochs(self._dataset, self.schema)

    @property
    def capture_active(self) -> bool:
        return self._capture_active

    def set_capture_active(self, active: bool) -> None:
        self._capture_active = bool(active)

    # ----- loading -----

    def load(self, dataset: Dataset) -> Dataset:
        if self._capture_active:
            raise CaptureInProgressError()
        self._dataset = dataset.with_epoch_seconds(self._epoch_seconds)
        self._epoch_index = 0
        return self._dataset

    def load_file(self, path: str | Path, *, decoder: Optional[Decoder] = None) -> Dataset:
        """Decode ``path`` and swap it in; on failure the current dataset stays."""
        if self._capture_active:
            raise CaptureInProgressError()
        result = load_recording(path, epoch_seconds=self._epoch_seconds, decoder=decoder)
        return self.load(result.unwrap())

    # ----- navigation -----

    def set_epoch(self, index: int) -> int:
        self._epoch_index = clamp_epoch(index, self.total_epochs)
        return self._epoch_index

    def next_epoch(self) -> int:
        return self.set_epoch(self._epoch_index + 1)

    def prev_epoch(self) -> int:
        return self.set_epoch(self._epoch_index - 1)

    def go_to_epoch(self, number: Any) -> int:
        """Jump to a 1-based epoch number; raises ``ValueError`` on bad input."""
        self._epoch_index = parse_epoch_number(number, self.total_epochs)
        return self._epoch_index

    def span(self) -> Optional[EpochSpan]:
        if self._dataset is None:
            return None
        return epoch_span(self._dataset, self._epoch_index)
