import importlib.util
import json
import logging

import pytest

from AttentionTracker.utils.logging import ThrottledLogger


def test_core_main_callable():
    from AttentionTracker.core.app import main
    assert callable(main)


def test_report_module_entry():
    spec = importlib.util.find_spec("AttentionTracker.analysis.report")
    assert spec is not None, "report module should be discoverable"


def test_demo_command_writes_session(tmp_path, capsys):
    from AttentionTracker.core.app import main

    out = tmp_path / "session.json"
    settings = tmp_path / "settings.json"
    code = main(["--settings", str(settings), "demo", "--duration", "2", "--seed", "5", "--out", str(out)])
    assert code == 0
    assert "Gaze points" in capsys.readouterr().out
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["source_name"] == "synthetic"
    assert data["gaze_points"]

    assert main(["--settings", str(settings), "report", str(out)]) == 0
    assert "Hotspot" in capsys.readouterr().out


def test_report_command_missing_file(tmp_path, capsys):
    from AttentionTracker.core.app import main

    assert main(["--settings", str(tmp_path / "s.json"), "report", str(tmp_path / "missing.json")]) == 1
    assert "Error" in capsys.readouterr().out


def test_throttled_logger_batches(caplog):
    log = logging.getLogger("throttle-test")
    t = ThrottledLogger(log, interval_sec=3600.0)
    with caplog.at_level(logging.DEBUG, logger="throttle-test"):
        for _ in range(5):
            t.debug("dropped %s", "frame")
    assert len(caplog.records) == 1
    assert caplog.records[0].getMessage() == "[1] dropped frame"
    assert t.pending == 4


def test_non_object_settings_section_is_reported(tmp_path, capsys):
    from AttentionTracker.core.app import main

    settings = tmp_path / "settings.json"
    settings.write_text(json.dumps({"attention": None}), encoding="utf-8")
    assert main(["--settings", str(settings), "demo", "--duration", "1", "--seed", "1"]) == 1
    out = capsys.readouterr().out
    assert out.startswith("Error:")
    assert "attention" in out


def test_summaries_follow_attention_settings(tmp_path):
    from AttentionTracker.analysis.sessions import RecordedSession
    from AttentionTracker.core.app import _summarize
    from AttentionTracker.core.events import GazePoint
    from AttentionTracker.core.settings import SettingsManager

    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"attention": {"expected_gaze_hz": 15, "region_grid": 2}}), encoding="utf-8")
    points = [GazePoint(timestamp=t, x=100, y=100, wall_time=t) for t in (0.0, 0.1, 0.2)]
    summary = _summarize(RecordedSession.create("camera-0", 0.4, points), SettingsManager(str(path)))
    # 3 points against 15 Hz * 0.5 s
    assert summary.timeline[0].intensity == 40
    assert len(summary.regions) == 4


def test_model_file_round_trip(tmp_path):
    from AttentionTracker.core.app import load_model, save_model
    from AttentionTracker.tracking.calibration import CalibrationModel
    from AttentionTracker.tracking.mapping import GazeMapper

    model = CalibrationModel((0, 0, 0, 1280.0, 0, 640.0), (0, 0, 0, 0, 720.0, 360.0))
    mapper = GazeMapper()
    mapper.install(model, bias=(4.0, -2.5))
    path = tmp_path / "calibration.json"
    save_model(mapper, str(path))
    loaded, bias = load_model(str(path))
    assert loaded == model
    assert bias == (4.0, -2.5)


def test_save_model_requires_calibration(tmp_path):
    from AttentionTracker.core.app import save_model
    from AttentionTracker.tracking.mapping import GazeMapper

    with pytest.raises(ValueError):
        save_model(GazeMapper(), str(tmp_path / "calibration.json"))


def test_load_model_rejects_malformed_file(tmp_path):
    from AttentionTracker.core.app import load_model

    path = tmp_path / "calibration.json"
    path.write_text(json.dumps({"weights_x": [1, 2]}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_model(str(path))


def test_verification_chart_written(tmp_path):
    from AttentionTracker.analysis.error_metrics import compute_point_errors
    from AttentionTracker.core.app import write_verification_plot
    from AttentionTracker.tracking.drift_corrector import VerificationResult

    result = VerificationResult(bias=(5.0, 0.0), errors=compute_point_errors([(100, 100)], [(95, 100)]))
    path = write_verification_plot(result, str(tmp_path / "plots"))
    assert path is not None and path.endswith("verification.png")
    assert (tmp_path / "plots" / "verification.png").exists()
    assert write_verification_plot(VerificationResult(bias=None), str(tmp_path / "empty")) is None


def test_throttled_logger_warning_level(caplog):
    log = logging.getLogger("throttle-warn")
    t = ThrottledLogger(log, interval_sec=3600.0)
    with caplog.at_level(logging.WARNING, logger="throttle-warn"):
        t.warning("Camera frame read failed")
    assert caplog.records[0].levelno == logging.WARNING


@pytest.mark.parametrize("command", ["calibrate", "track"])
def test_camera_commands_report_acquisition_failure(tmp_path, capsys, monkeypatch, command):
    from AttentionTracker.core import app
    from AttentionTracker.core.errors import AcquisitionError

    def no_camera(settings):
        raise AcquisitionError("camera 0 unavailable")

    monkeypatch.setattr(app, "_open_sources", no_camera)
    assert app.main(["--settings", str(tmp_path / "s.json"), command]) == 1
    assert "camera 0 unavailable" in capsys.readouterr().out
