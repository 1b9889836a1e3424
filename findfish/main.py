"""Entry point: CLI argument parsing, logging, and mode dispatch."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

import uvicorn
import yaml

from findfish.calibration.stereo import StereoCalibrator, triangulate_points
from findfish.config import AppConfig, load_config
from findfish.processing.processor import PairProcessor
from findfish.scheduler import ProcessingScheduler
from findfish.web.app import create_app

logger = logging.getLogger("findfish")


def setup_logging(log_dir: str, verbose: bool = False) -> None:
    """Configure logging to both console and file."""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_path / "findfish.log"),
        ],
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Stereo fish video event detection"
    )
    parser.add_argument(
        "-c", "--config",
        default="config/default.yaml",
        help="Path to YAML config file (default: config/default.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    sub = parser.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Process raw videos until none are left (default)")
    run.add_argument("--video-dir", default=None, help="Raw video directory (overrides config)")
    run.add_argument("--record-dir", default=None, help="Record directory (overrides config)")
    run.add_argument("--parallel", action="store_true",
                     help="Process all pairs of a cycle concurrently")

    calibrate = sub.add_parser("calibrate", help="Stereo calibrate from chessboard images")
    calibrate.add_argument("left_dir", help="Directory of left camera images")
    calibrate.add_argument("right_dir", help="Directory of right camera images")
    calibrate.add_argument("-o", "--output", default=None,
                           help="Calibration file to write (overrides config)")

    triangulate = sub.add_parser("triangulate", help="Triangulate measure points")
    triangulate.add_argument("--points", default=None,
                             help="Measure points YAML (overrides config)")
    triangulate.add_argument("--calibration", default=None,
                             help="Calibration file (overrides config)")

    serve = sub.add_parser("serve", help="Serve the status API")
    serve.add_argument("--host", default=None, help="Web server host (overrides config)")
    serve.add_argument("--port", type=int, default=None, help="Web server port (overrides config)")

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = "run"
        args.video_dir = args.record_dir = None
        args.parallel = False
    return args


def run_batch(config: AppConfig) -> int:
    """Process videos until the raw directory has nothing left to do."""
    stop_event = threading.Event()
    processor = PairProcessor(config, stop_event=stop_event)
    scheduler = ProcessingScheduler(config, processor, stop_event=stop_event)

    def handle_signal(signum, frame):
        logger.info("Got signal %d, stopping", signum)
        scheduler.stop()

    previous = {
        signum: signal.signal(signum, handle_signal)
        for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        scheduler.run()
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)
    return 130 if scheduler.stopped else 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    config = load_config(args.config)
    setup_logging(config.logging.log_dir, args.verbose)

    if args.command == "calibrate":
        calib = StereoCalibrator(config.calibration, output_path=args.output)
        try:
            calib.read_images(args.left_dir, args.right_dir)
            result = calib.run()
        except Exception:
            logger.exception("Calibration failed")
            return 1
        print(f"RMS error: {result.rms:.4f} ({result.pairs_used} pairs)")
        return 0

    if args.command == "triangulate":
        try:
            measurement = triangulate_points(
                args.points or config.calibration.measure_points,
                args.calibration or config.calibration.calibration_file,
            )
        except Exception:
            logger.exception("Triangulation failed")
            return 1
        print(yaml.safe_dump(measurement.to_dict(), sort_keys=False))
        return 0

    if args.command == "serve":
        if args.host:
            config.web.host = args.host
        if args.port:
            config.web.port = args.port
        logger.info("Status API: http://%s:%d", config.web.host, config.web.port)
        uvicorn.run(create_app(config, args.config),
                    host=config.web.host, port=config.web.port, log_level="info")
        return 0

    if args.video_dir:
        config.paths.video_dir = args.video_dir
    if args.record_dir:
        config.paths.record_dir = args.record_dir
    if args.parallel:
        config.scheduler.mode = "parallel"

    logger.info("Raw videos: %s, records: %s", config.paths.video_dir,
                config.paths.record_dir)
    return run_batch(config)


if __name__ == "__main__":
    sys.exit(main())
