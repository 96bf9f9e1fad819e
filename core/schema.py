"""Fixed display schema: which canonical channel sits in which image row."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from core.channel_map import AUDIO_LABEL_RE
from core.dataset import Channel, Dataset

__all__ = [
    "SchemaRow",
    "DEFAULT_SCHEMA",
    "AUDIO_VOLUME_ROW",
    "resolve_row_channel",
    "resolve_rows",
]

AUDIO_VOLUME_ROW = "Audio Volume"


@dataclass(frozen=True)
class SchemaRow:
    channel: str
    height_px: int = 43
    value_range: Optional[tuple[float, float]] = None
    label: str = ""

    def __post_init__(self):
        if self.value_range is not None:
            lo, hi = (float(v) for v in self.value_range)
            if hi <= lo:
                raise ValueError("value_range max must exceed min")
            object.__setattr__(self, "value_range", (lo, hi))
        if not self.label:
            object.__setattr__(self, "label", self.channel)

    @property
    def is_blank(self) -> bool:
        return not self.channel

    @property
    def is_saturation(self) -> bool:
        return self.channel.startswith("Saturation")


# Three Position rows collapse onto the single canonical Position channel.
DEFAULT_SCHEMA: tuple[SchemaRow, ...] = (
    SchemaRow("Position"),
    SchemaRow("Position"),
    SchemaRow("Position"),
    SchemaRow("C3-M2"),
    SchemaRow("C4-M1"),
    SchemaRow("O1-M2"),
    SchemaRow("O2-M1"),
    SchemaRow("E1-M2"),
    SchemaRow("E2-M1"),
    SchemaRow("Chin EMG"),
    SchemaRow("ECG"),
    SchemaRow("Flow", 129),
    SchemaRow("Thermistor"),
    SchemaRow("Thorax"),
    SchemaRow("Abdomen"),
    SchemaRow("Snore"),
    SchemaRow(AUDIO_VOLUME_ROW),
    SchemaRow("Left Leg"),
    SchemaRow("Right Leg"),
    SchemaRow("Saturation", 86, (85.0, 100.0), "Saturation (85-100%)"),
    SchemaRow("Saturation", 86, (40.0, 100.0), "Saturation (40-100%)"),
)


def _matches_row(row: SchemaRow, ch: Channel) -> bool:
    if ch.name == row.channel:
        return True
    return row.is_saturation and "SPO2" in ch.raw_label.upper()


def _matches_audio(ch: Channel) -> bool:
    return ch.name == "Snore" or bool(AUDIO_LABEL_RE.search(ch.raw_label.upper()))


def resolve_row_channel(dataset: Dataset, row: SchemaRow, row_index: int) -> Channel | None:
    """Pick the channel drawn in ``row``; ``None`` means the row stays empty.

    The first matching channel wins, so duplicate canonical names shadow
    later channels. Unmatched rows fall back to the channel at the same
    position.
    """
    if row.is_blank:
        return None
    channels = dataset.channels
    for ch in channels:
        if _matches_row(row, ch):
            return ch
    if row.channel == AUDIO_VOLUME_ROW:
        for ch in channels:
            if _matches_audio(ch):
                return ch
    if 0 <= row_index < len(channels):
        return channels[row_index]
    return None


def resolve_rows(dataset: Dataset, schema: Sequence[SchemaRow] = DEFAULT_SCHEMA) -> list[Channel | None]:
    return [resolve_row_channel(dataset, row, idx) for idx, row in enumerate(schema)]
