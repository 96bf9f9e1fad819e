import numpy as np
import pytest

from core.composer import OUTPUT_SIZES, band_layout, compose_frame, output_size
from core.dataset import Channel, Dataset
from core.raster import RenderStyle
from core.schema import DEFAULT_SCHEMA, SchemaRow


def lit_rows(frame: np.ndarray) -> np.ndarray:
    return np.unique(np.argwhere(frame.any(axis=2))[:, 0])


@pytest.mark.parametrize("height,rows", [(1080, 21), (1920, 21), (100, 3), (7, 7)])
def test_band_layout_tiles_height(height, rows):
    bands = band_layout(height, rows)
    assert len(bands) == rows
    assert bands[0][0] == 0
    for (y, h), (next_y, _) in zip(bands, bands[1:]):
        assert y + h == next_y
    last_y, last_h = bands[-1]
    assert last_y + last_h == height


def test_band_layout_last_band_takes_remainder():
    bands = band_layout(1080, 21)
    assert bands[0] == (0, 51)
    assert bands[-1] == (1020, 60)


def test_output_sizes():
    assert output_size("wide") == OUTPUT_SIZES["wide"]
    assert (output_size(" Tall ").width, output_size("tall").height) == (1080, 1920)
    with pytest.raises(ValueError):
        output_size("square")


@pytest.mark.parametrize("name", ["wide", "tall"])
def test_compose_frame_shape(name):
    size = OUTPUT_SIZES[name]
    ds = Dataset((Channel("ECG", "ECG", 10.0, np.sin(np.arange(600) / 5.0)),), epoch_seconds=30)
    frame = compose_frame(ds, 0, size.width, size.height)
    assert frame.shape == (size.height, size.width, 3)
    assert frame.dtype == np.uint8


def test_compose_frame_leaves_missing_rows_blank():
    ds = Dataset((Channel("Thorax", "Thor", 10.0, np.sin(np.arange(100))),), epoch_seconds=10)
    schema = (SchemaRow(""), SchemaRow("Thorax"), SchemaRow("Abdomen"))
    frame = compose_frame(ds, 0, 120, 90, schema)
    rows = lit_rows(frame)
    assert rows.size > 0
    assert rows.min() >= 30
    assert rows.max() < 60


def test_compose_frame_epoch_past_end_is_blank():
    ds = Dataset((Channel("ECG", "ECG", 10.0, np.ones(100)),), epoch_seconds=10)
    frame = compose_frame(ds, 5, 50, 40, (SchemaRow("ECG"),))
    assert not frame.any()


def test_compose_frame_uses_style():
    style = RenderStyle("#ffffff", "#000000")
    ds = Dataset((Channel("ECG", "ECG", 10.0, np.zeros(100)),), epoch_seconds=10)
    frame = compose_frame(ds, 0, 40, 20, (SchemaRow("ECG"),), style)
    assert (frame[0, 0] == 255).all()
    # flat trace sits on the band's vertical centre
    assert (frame[10, :] == 0).all()


def test_compose_frame_default_schema_with_saturation():
    ds = Dataset(
        (
            Channel("C3-M2", "C3-M2", 100.0, np.random.default_rng(0).normal(size=3000)),
            Channel("Saturation", "SpO2", 1.0, np.full(30, 97.0)),
        ),
        epoch_seconds=30,
    )
    frame = compose_frame(ds, 0, 1920, 1080, DEFAULT_SCHEMA)
    bands = band_layout(1080, len(DEFAULT_SCHEMA))
    # the 85-100% saturation row: 97 maps well inside the band
    y, h = bands[-2]
    assert frame[y:y + h].any()
