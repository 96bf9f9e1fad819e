from pathlib import Path

from config import MIN_AUTO_DELAY_MS, ViewerConfig


def test_viewer_config_defaults_when_missing(tmp_path: Path):
    cfg = ViewerConfig.load(tmp_path / "missing.ini")
    assert cfg.epoch_seconds == 30
    assert cfg.auto_delay_ms == 800
    assert cfg.output_size == "wide"
    assert cfg.prefix == "edf_epoch"
    assert cfg.log_capacity == 300
    timing = cfg.timing()
    assert timing.capture_delay_s == 0.8
    assert timing.settle_delay_s == 0.35
    assert timing.epoch_delay_s == 0.8
    assert (cfg.frame_size().width, cfg.frame_size().height) == (1920, 1080)


def test_viewer_config_parse(tmp_path: Path):
    ini_path = tmp_path / "config.ini"
    ini_path.write_text(
        """
[epoch]
seconds = 20

[capture]
auto_delay_ms = 40
inter_file_delay_ms = 0
output_size = Tall
prefix = night
fallback_dir = ~/exports

[render]
background = #ffffff
trace = #000000
""".strip()
    )

    cfg = ViewerConfig.load(ini_path)
    assert cfg.epoch_seconds == 20
    assert cfg.auto_delay_ms == MIN_AUTO_DELAY_MS
    assert cfg.inter_file_delay_ms == 0
    assert cfg.output_size == "tall"
    assert cfg.prefix == "night"
    assert cfg.render_style().background == (255, 255, 255)
    assert cfg.fallback_saver().directory == Path("~/exports").expanduser()


def test_viewer_config_invalid_values_keep_defaults(tmp_path: Path):
    ini_path = tmp_path / "config.ini"
    ini_path.write_text(
        """
[capture]
settle_delay_ms = soon
min_epoch_delay_ms = -5
output_size = square
prefix =

[render]
background = #000000
trace = #111111
""".strip()
    )

    cfg = ViewerConfig.load(ini_path)
    assert cfg.settle_delay_ms == 350
    assert cfg.min_epoch_delay_ms == 50
    assert cfg.output_size == "wide"
    assert cfg.prefix == "edf_epoch"
    assert (cfg.background, cfg.trace) == ("#000000", "#ffffff")


def test_viewer_config_save_round_trip(tmp_path: Path):
    ini_path = tmp_path / "config.ini"
    cfg = ViewerConfig.load(ini_path)
    cfg.epoch_seconds = 10
    cfg.auto_delay_ms = 1500
    cfg.output_size = "tall"
    cfg.save()

    written = ini_path.read_text()
    assert "seconds = 10" in written
    assert "auto_delay_ms = 1500" in written

    reloaded = ViewerConfig.load(ini_path)
    assert reloaded.epoch_seconds == 10
    assert reloaded.auto_delay_ms == 1500
    assert reloaded.output_size == "tall"
