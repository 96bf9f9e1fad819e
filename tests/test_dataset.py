import json
from pathlib import Path

import numpy as np
import pytest

from core.dataset import (
    Channel,
    Dataset,
    build_dataset,
    coerce_epoch_seconds,
    dataset_from_json,
    load_json_dataset,
)
from core.errors import DecodeError, DecodeErrorKind, EmptyChannelSetError


def test_channel_defaults_sample_rate_and_freezes_samples():
    source = np.arange(5, dtype=float)
    ch = Channel("ECG", "ECG", None, source)
    assert ch.sample_rate == 100.0
    assert Channel("ECG", "ECG", -3, []).sample_rate == 100.0
    with pytest.raises(ValueError):
        ch.samples[0] = 42.0
    source[0] = 99.0
    assert ch.samples[0] == 0.0


def test_coerce_epoch_seconds():
    assert coerce_epoch_seconds(30) == 30
    assert coerce_epoch_seconds(0) == 1
    assert coerce_epoch_seconds("12") == 12
    assert coerce_epoch_seconds(None) == 1
    assert coerce_epoch_seconds(float("nan")) == 1


def test_build_dataset_canonicalizes_labels():
    ds = build_dataset(
        [
            {"label": "EOGL", "sample_rate": 200.0, "samples": [1, 2, 3]},
            {"label": "SpO2", "sample_rate": None, "samples": [95, 96]},
        ],
        epoch_seconds=20,
        default_sample_rate=1.0,
    )
    assert [ch.name for ch in ds.channels] == ["E1-M2", "Saturation"]
    assert [ch.raw_label for ch in ds.channels] == ["EOGL", "SpO2"]
    assert ds.channels[1].sample_rate == 1.0
    assert ds.epoch_seconds == 20


def test_build_dataset_without_channels():
    with pytest.raises(EmptyChannelSetError) as info:
        build_dataset([])
    assert info.value.kind is DecodeErrorKind.EMPTY


def test_with_epoch_seconds_shares_samples():
    ds = Dataset((Channel("ECG", "ECG", 10.0, np.zeros(10)),), epoch_seconds=30)
    other = ds.with_epoch_seconds(0)
    assert other.epoch_seconds == 1
    assert other.channels[0].samples is ds.channels[0].samples
    assert ds.epoch_seconds == 30


def test_dataset_from_json_fills_missing_names():
    payload = {
        "channels": [
            {"rawLabel": "Thor", "sampleRate": 25, "samples": [0.1, 0.2]},
            {"name": "Custom", "rawLabel": "whatever", "sampleRate": 10, "samples": []},
        ],
        "epochSeconds": 15,
    }
    ds = dataset_from_json(payload)
    assert [ch.name for ch in ds.channels] == ["Thorax", "Custom"]
    assert ds.epoch_seconds == 15


def test_dataset_from_json_rejects_bad_shapes():
    with pytest.raises(DecodeError):
        dataset_from_json({"signals": []})
    with pytest.raises(EmptyChannelSetError):
        dataset_from_json({"channels": []})
    with pytest.raises(DecodeError):
        dataset_from_json({"channels": [{"label": "ECG", "samples": ["x", "y"]}]})


def test_load_json_dataset_from_file(tmp_path: Path):
    path = tmp_path / "night.json"
    path.write_text(json.dumps({"channels": [{"label": "ECG", "sampleRate": 2, "samples": [1, 2, 3, 4]}]}))
    ds = load_json_dataset(path, epoch_seconds=2)
    assert ds.epoch_seconds == 2
    assert ds.channels[0].n_samples == 4
    assert ds.source == str(path)


def test_load_json_dataset_invalid(tmp_path: Path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(DecodeError) as info:
        load_json_dataset(path)
    assert info.value.kind is DecodeErrorKind.MALFORMED
    with pytest.raises(DecodeError) as info:
        load_json_dataset(tmp_path / "missing.json")
    assert info.value.kind is DecodeErrorKind.UNREADABLE
