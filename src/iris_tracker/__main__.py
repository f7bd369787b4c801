import argparse
import asyncio
import logging
import sys

from pydantic import ValidationError

from iris_tracker.configs import TrackerSettings
from iris_tracker.core.events import TrackerEvent
from iris_tracker.core.runner import GazeRunner
from iris_tracker.core.tracker import EyeTracker
from iris_tracker.devices import SimulatedDevice
from iris_tracker.errors import EyeTrackerError
from iris_tracker.factories import create_sinks

logger = logging.getLogger("iris_tracker.main")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="iris_tracker", description="HH eye tracker client")
    parser.add_argument(
        "--endpoint",
        action="append",
        help="WebSocket URL of the device. Repeat to give fallbacks, tried in order."
    )
    parser.add_argument(
        "--dummy",
        action="store_true",
        help="Run against an in-process simulated device instead of real hardware."
    )
    parser.add_argument(
        "--calibrate",
        action="store_true",
        help="Run the 5-point calibration before tracking."
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=10.0,
        help="Seconds to track before disconnecting (default: 10)."
    )
    return parser.parse_args(argv)


async def run_session(settings: TrackerSettings, args: argparse.Namespace) -> int:
    device = None
    if args.dummy:
        logger.warning("Starting SIMULATED device (dummy mode)")
        device = SimulatedDevice()
        settings.connection.endpoints = [await device.start()]

    tracker = EyeTracker(settings)
    runner = GazeRunner(tracker.events, create_sinks(settings), queue_size=settings.runner.queue_size)

    calibrated = asyncio.Event()
    tracker.on(TrackerEvent.CALIBRATION_COMPLETE, lambda result: calibrated.set())
    tracker.on(TrackerEvent.CALIBRATION_PROGRESS, lambda p: logger.info(f"Calibration point {p.current}/{p.total} done"))
    tracker.on(TrackerEvent.ERROR, lambda e: logger.error(f"Tracker error: {e}"))

    try:
        await tracker.connect()
        await runner.start()

        if args.calibrate:
            # Give the bring-up sequence time to settle before the first target.
            await asyncio.sleep(settings.device.bring_up_step_delay_s * 4)
            tracker.start_calibration()
            await calibrated.wait()
            logger.info("Calibration complete.")
        else:
            tracker.start_tracking()

        await asyncio.sleep(args.duration)
        tracker.stop_tracking()

        recent = tracker.get_recent_data(1)
        logger.info(f"Collected {len(tracker.get_data()):,} samples; last: {recent[0] if recent else None}")
        return 0

    except EyeTrackerError as e:
        logger.error(f"Session failed: {e}")
        return 1

    finally:
        await runner.stop()
        await tracker.dispose()
        if device:
            await device.stop()


def main(argv=None) -> int:
    args = parse_args(argv)

    # 1. Load Configuration
    try:
        settings = TrackerSettings()
    except ValidationError as e:
        print(f"Configuration Error: {e}")
        return 1

    if args.endpoint:
        settings.connection.endpoints = args.endpoint

    # 2. Setup Logging
    logging.basicConfig(
        level=settings.logging.level,
        format=settings.logging.format,
        stream=sys.stdout
    )
    logger.info("Starting HH eye tracker client")

    # 3. Run
    try:
        return asyncio.run(run_session(settings, args))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        return 130
    finally:
        logger.info("Shutdown complete.")


if __name__ == "__main__":
    sys.exit(main())
