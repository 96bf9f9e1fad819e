import app
from core.capture import BatchStatus
from core.errors import EnumerationError


def test_batch_mode_exit_codes(monkeypatch, tmp_path):
    seen = []

    def fake_run_batch(folder, cfg):
        seen.append((folder, cfg.epoch_seconds, cfg.output_size, cfg.auto_delay_ms))
        return BatchStatus.COMPLETED if len(seen) == 1 else BatchStatus.STOPPED

    monkeypatch.setattr(app, "run_batch", fake_run_batch)
    ini = str(tmp_path / "config.ini")
    assert app.cli(["--config", ini, "--batch", "night", "--epoch-seconds", "20", "--output-size", "tall"]) == 0
    assert app.main(config_path=ini, batch="night", delay_ms=10) == 1
    assert seen[0] == ("night", 20, "tall", 800)
    assert seen[1][3] == 10


def test_batch_mode_reports_capture_errors(monkeypatch, tmp_path):
    def failing_run_batch(folder, cfg):
        raise EnumerationError("cannot list night")

    monkeypatch.setattr(app, "run_batch", failing_run_batch)
    assert app.main(config_path=str(tmp_path / "config.ini"), batch="night") == 1
