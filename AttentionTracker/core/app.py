"""
Command-line entry point.

  attention-tracker demo       synthetic session -> summary (+ optional JSON/plots)
  attention-tracker report     summarize a saved session JSON
  attention-tracker calibrate  guided calibration with the camera -> model JSON
  attention-tracker track      headless live recording with a saved calibration model
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
import time
from typing import List, Optional, Tuple

from AttentionTracker.analysis.report import SessionSummary, format_summary, load_session, summarize_session
from AttentionTracker.analysis.sessions import RecordedSession
from AttentionTracker.analysis.synthetic import generate_gaze
from AttentionTracker.core.errors import AcquisitionError
from AttentionTracker.core.settings import SettingsManager
from AttentionTracker.tracking.calibration import CalibrationModel
from AttentionTracker.tracking.drift_corrector import VerificationResult
from AttentionTracker.tracking.mapping import GazeMapper
from AttentionTracker.utils.logging import ThrottledLogger

logger = logging.getLogger(__name__)


def save_session(session: RecordedSession, path: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(session.to_dict(), f, indent=2)
    logger.info("Saved session %s (%d points) to %s", session.id, session.point_count, path)


def save_model(mapper: GazeMapper, path: str) -> None:
    """Write the installed model and its bias vector as JSON."""
    if mapper.model is None:
        raise ValueError("no calibration model to save")
    data = mapper.model.to_dict()
    data["bias"] = list(mapper.bias)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info("Saved calibration model to %s", path)


def load_model(path: str) -> Tuple[CalibrationModel, Optional[Tuple[float, float]]]:
    """Read a model written by save_model. Returns (model, bias or None)."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    try:
        model = CalibrationModel.from_dict(data)
        bias = data.get("bias")
        if bias is not None:
            bias = (float(bias[0]), float(bias[1]))
    except (KeyError, TypeError, IndexError, AttributeError) as e:
        raise ValueError(f"Malformed calibration model {path}: {e}") from e
    return model, bias


def _summarize(session: RecordedSession, settings: SettingsManager) -> SessionSummary:
    return summarize_session(
        session,
        frame_size=settings.frame_size(),
        bucket_sec=settings.bucket_sec(),
        expected_hz=settings.expected_gaze_hz(),
        grid_size=settings.region_grid(),
    )


def write_plots(session: RecordedSession, settings: SettingsManager, out_dir: str) -> List[str]:
    # matplotlib is only needed here
    from AttentionTracker.analysis.attention import compute_heatmap
    from AttentionTracker.analysis import plots

    os.makedirs(out_dir, exist_ok=True)
    summary = _summarize(session, settings)
    res, radius = settings.heatmap_params()
    heat = compute_heatmap(session.gaze_points, 0.0, session.duration, settings.frame_size(), res, radius)
    figs = {
        "heatmap.png": plots.fig_heatmap(heat, settings.frame_size()),
        "timeline.png": plots.fig_timeline(summary.timeline),
        "quadrants.png": plots.fig_quadrants(summary.quadrants),
        "regions.png": plots.fig_regions(summary.regions, settings.region_grid()),
    }
    written = []
    for name, fig in figs.items():
        path = os.path.join(out_dir, name)
        fig.savefig(path, dpi=100)
        plots.plt.close(fig)
        written.append(path)
    return written


def write_verification_plot(result: VerificationResult, out_dir: str) -> Optional[str]:
    """Chart of target vs. predicted position per verification dot. None if there were no residuals."""
    if not result.errors:
        return None
    from AttentionTracker.analysis import plots

    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, "verification.png")
    fig = plots.fig_verification(result.errors)
    fig.savefig(path, dpi=100)
    plots.plt.close(fig)
    return path


def cmd_demo(args: argparse.Namespace, settings: SettingsManager) -> int:
    points = generate_gaze(args.duration, fps=int(settings.frame_fps()), frame_size=settings.frame_size(), seed=args.seed)
    session = RecordedSession.create("synthetic", args.duration, points)
    print(format_summary(_summarize(session, settings), session.source_name))
    if args.out:
        save_session(session, args.out)
    if args.plots:
        for p in write_plots(session, settings, args.plots):
            print(f"Wrote {p}")
    return 0


def cmd_report(args: argparse.Namespace, settings: SettingsManager) -> int:
    session = load_session(args.session)
    print(format_summary(_summarize(session, settings), session.source_name))
    return 0


def _open_sources(settings: SettingsManager):
    """Open the camera and the landmark provider. Raises AcquisitionError, leaving nothing open."""
    from AttentionTracker.tracking.camera import Camera
    from AttentionTracker.tracking.detection import FaceMeshLandmarkProvider

    w, h = settings.frame_size()
    cam = Camera(index=settings.camera_index(), width=w, height=h, target_fps=int(settings.frame_fps()))
    provider = FaceMeshLandmarkProvider()
    try:
        cam.open()
        provider.open()
    except AcquisitionError:
        cam.close()
        raise
    return cam, provider


def _feed_frame(cam, provider, pipeline, now: float, dropped: ThrottledLogger) -> None:
    frame = cam.read()
    if frame is None:
        dropped.warning("Camera frame read failed")
        return
    face = provider.process(frame)
    if face is not None:
        pipeline.on_landmarks(face, now)


def cmd_calibrate(args: argparse.Namespace, settings: SettingsManager) -> int:
    from AttentionTracker.calibration.session import CalibrationPhase
    from AttentionTracker.tracking.pipeline import Pipeline

    pipeline = Pipeline(settings)
    cal = pipeline.calibration
    try:
        cam, provider = _open_sources(settings)
    except AcquisitionError as e:
        print(f"Failed to start calibration: {e}")
        return 1

    dropped = ThrottledLogger(logger)
    shown_wp = -1
    shown_dot = -1
    dot_since = 0.0
    pipeline.start_calibration(now=time.monotonic())
    try:
        while cal.is_active:
            now = time.monotonic()
            phase = pipeline.tick(now)
            _feed_frame(cam, provider, pipeline, now, dropped)
            if phase is CalibrationPhase.VERIFYING:
                if cal.verify_step != shown_dot:
                    shown_dot, dot_since = cal.verify_step, now
                    x, y = cal.verify_target_screen
                    print(f"Look at verification dot {shown_dot + 1}/{len(cal.verify_targets)} at ({x:.0f}, {y:.0f}) px")
                elif now - dot_since >= cal.timing.dwell_s:
                    pipeline.confirm_verification()
            elif cal.waypoint_index != shown_wp:
                shown_wp = cal.waypoint_index
                x, y = cal.rect.to_screen(*cal.waypoints[shown_wp])
                print(f"Follow the dot: waypoint {shown_wp + 1}/{len(cal.waypoints)} at ({x:.0f}, {y:.0f}) px")
    except KeyboardInterrupt:
        pipeline.cancel()
        print("Calibration cancelled")
        return 1
    finally:
        provider.close()
        cam.close()

    if cal.phase is not CalibrationPhase.READY:
        print(f"Calibration failed: {cal.last_error}")
        return 1
    save_model(pipeline.mapper, args.out)
    acc = cal.verification.accuracy
    print(f"Saved calibration to {args.out} (mean error {acc.mean_px:.1f} px over {acc.count} dots)")
    if args.plots:
        path = write_verification_plot(cal.verification, args.plots)
        if path:
            print(f"Wrote {path}")
    return 0


def cmd_track(args: argparse.Namespace, settings: SettingsManager) -> int:
    from AttentionTracker.tracking.pipeline import Pipeline

    pipeline = Pipeline(settings)
    if args.model:
        model, bias = load_model(args.model)
        pipeline.mapper.install(model, bias)
    try:
        cam, provider = _open_sources(settings)
    except AcquisitionError as e:
        print(f"Failed to start tracking: {e}")
        return 1

    dropped = ThrottledLogger(logger)
    start = time.monotonic()
    last_meter = start
    pipeline.start_recording(source_name=args.source or f"camera-{cam.index}", now=start)
    try:
        while True:
            now = time.monotonic()
            if now - start >= args.duration:
                break
            pipeline.set_content_time(now - start)
            _feed_frame(cam, provider, pipeline, now, dropped)
            if now - last_meter >= 1.0:
                last_meter = now
                logger.info("Live intensity %d%%", pipeline.live_intensity(now))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        provider.close()
        cam.close()
    session = pipeline.stop_recording(now=time.monotonic())
    print(format_summary(_summarize(session, settings), session.source_name))
    if args.out:
        save_session(session, args.out)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="attention-tracker", description="Gaze attention tracking and reporting")
    p.add_argument("--settings", default=None, help="Path to settings.json")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = p.add_subparsers(dest="command", required=True)

    d = sub.add_parser("demo", help="Summarize a synthetic gaze session")
    d.add_argument("--duration", type=float, default=20.0)
    d.add_argument("--seed", type=int, default=None)
    d.add_argument("--out", default=None, help="Write the session JSON here")
    d.add_argument("--plots", default=None, help="Directory for PNG charts")
    d.set_defaults(func=cmd_demo)

    r = sub.add_parser("report", help="Summarize a saved session JSON")
    r.add_argument("session")
    r.set_defaults(func=cmd_report)

    c = sub.add_parser("calibrate", help="Run the guided calibration and save the model")
    c.add_argument("--out", default="calibration.json", help="Calibration model JSON to write")
    c.add_argument("--plots", default=None, help="Directory for the verification chart")
    c.set_defaults(func=cmd_calibrate)

    t = sub.add_parser("track", help="Record live gaze from the camera")
    t.add_argument("--model", default=None, help="Calibration model JSON written by `calibrate`")
    t.add_argument("--duration", type=float, default=30.0)
    t.add_argument("--source", default=None)
    t.add_argument("--out", default=None)
    t.set_defaults(func=cmd_track)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = SettingsManager(args.settings)
        return int(args.func(args, settings))
    except (ValueError, OSError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
