#!/usr/bin/env python3
"""
Main entry point for the focus guard system.
Provides command-line interface for real-time monitoring.
"""

import os
import warnings

# Suppress warnings unless verbose mode
os.environ['TF_CPP_MIN_LOG_LEVEL'] = '3'
warnings.filterwarnings('ignore')

import cv2
import numpy as np
import time
import argparse
import platform
import sys
from typing import Optional

from focusguard.core.landmarks import LandmarkProvider
from focusguard.core.redirect import DryRunRedirectController, RedirectController, RedirectDispatcher
from focusguard.core.session import FocusSession, TickResult
from focusguard.core.types import Phase
from focusguard.utils.config import config
from focusguard.utils.logger import get_logger, set_console_level

logger = get_logger("focusguard.main")

PHASE_COLORS = {
    Phase.CALIBRATING: (255, 200, 0),
    Phase.FOCUSED: (0, 255, 0),
    Phase.OFF_FOCUS_PENDING: (0, 255, 255),
    Phase.OFF_FOCUS_OPENED: (0, 0, 255),
    Phase.REFOCUS_PENDING: (0, 165, 255),
}

QUIT_KEYS = (ord('q'), 27)


def parse_arguments():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="FocusGuard - webcam focus monitor")

    parser.add_argument("--camera", "-c", type=int, default=None,
                        help="Camera device index (default: from config, 0)")
    parser.add_argument("--width", "-w", type=int, default=None,
                        help="Frame width (default: from config, 1280)")
    parser.add_argument("--height", type=int, default=None,
                        help="Frame height (default: from config, 720)")
    parser.add_argument("--fps", "-f", type=int, default=None,
                        help="Target FPS (default: from config, 30)")
    parser.add_argument("--config", type=str, default="",
                        help="JSON configuration file merged over the defaults")
    parser.add_argument("--personalize", action="store_true",
                        help="Derive personal thresholds at the end of calibration")
    parser.add_argument("--no-display", action="store_true",
                        help="Disable video display (headless mode)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Log redirect actions without launching a browser")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose output")

    return parser.parse_args()


def apply_arguments(args) -> None:
    """Fold command line overrides into the global configuration."""
    if args.config:
        if not config.load_from_file(args.config):
            print("Continuing with default configuration")
    if args.camera is not None:
        config.camera.device_id = args.camera
    if args.width is not None:
        config.camera.width = args.width
    if args.height is not None:
        config.camera.height = args.height
    if args.fps is not None:
        config.camera.fps = args.fps
    if args.personalize:
        config.calibration.personalize_thresholds = True
    if args.dry_run:
        config.redirect.dry_run = True

    set_console_level("DEBUG" if args.verbose else config.logging.console_level)


def initialize_camera(camera_index: int, width: int, height: int, fps: int):
    """Initialize camera capture."""
    print(f"Initializing camera (device: {camera_index})...")

    # On Windows prefer DirectShow backend which is often more reliable
    if platform.system() == 'Windows':
        cap = cv2.VideoCapture(camera_index, cv2.CAP_DSHOW)
    else:
        cap = cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        print(f"✗ Error: Could not open camera {camera_index}")
        return None

    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    cap.set(cv2.CAP_PROP_FPS, fps)

    actual_width = cap.get(cv2.CAP_PROP_FRAME_WIDTH)
    actual_height = cap.get(cv2.CAP_PROP_FRAME_HEIGHT)
    actual_fps = cap.get(cv2.CAP_PROP_FPS)

    print(f"✓ Camera initialized: {actual_width:.0f}x{actual_height:.0f} @ {actual_fps:.1f} FPS")
    return cap


def initialize_provider() -> Optional[LandmarkProvider]:
    """Load the face mesh and pose models."""
    print("Loading landmark models...")
    try:
        provider = LandmarkProvider()
    except (RuntimeError, OSError) as e:
        print(f"✗ Error loading landmark models: {e}")
        return None
    print("✓ Landmark models loaded")
    return provider


def build_dispatcher() -> RedirectDispatcher:
    """Create the redirect executor chosen by the configuration."""
    if config.redirect.dry_run:
        controller = DryRunRedirectController(config.redirect.url)
    else:
        controller = RedirectController(
            redirect_url=config.redirect.url,
            app_data_dir=config.redirect.app_data_dir,
            profile_dir_name=config.redirect.profile_dir_name,
        )
    return RedirectDispatcher(controller)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def draw_status(frame: np.ndarray, session: FocusSession, tick: TickResult, now_ms: float) -> np.ndarray:
    """Draw the phase, dwell timers and signals on the frame."""
    state = tick.state
    color = PHASE_COLORS.get(state.phase, (255, 255, 255))
    font = cv2.FONT_HERSHEY_SIMPLEX

    overlay = frame.copy()
    cv2.rectangle(overlay, (10, 10), (430, 130), (20, 20, 30), -1)
    cv2.addWeighted(overlay, 0.75, frame, 0.25, 0, frame)
    cv2.rectangle(frame, (10, 10), (430, 130), color, 2)

    cv2.putText(frame, state.phase.upper(), (20, 40), font, 0.8, color, 2)

    if not session.calibration.complete:
        snapshot = session.calibration_snapshot(now_ms)
        detail = f"Hold still: {snapshot.remaining_ms / 1000.0:.1f}s, samples {snapshot.sample_count}"
    else:
        detail = f"Off focus {state.off_focus_ms:.0f}ms | Refocus {state.refocus_ms:.0f}ms"
    cv2.putText(frame, detail, (20, 72), font, 0.5, (220, 220, 220), 1)

    summary = tick.signals.summary()
    flags = [name for name in ('look_away', 'phone_like_down', 'left_seat_like') if summary[name]]
    cv2.putText(frame, f"Reason: {state.last_reason}", (20, 98), font, 0.5, (220, 220, 220), 1)
    cv2.putText(frame, f"Conf: {summary['confidence']:.2f} {' '.join(flags)}", (20, 120),
                font, 0.5, (220, 220, 220), 1)
    return frame


def print_status(tick: TickResult, frame_count: int, fps: float, verbose: bool = False):
    """Print status information."""
    state = tick.state
    if verbose:
        print(f"Frame {frame_count:5d} | FPS: {fps:5.1f} | Phase: {state.phase} | "
              f"Off: {state.off_focus_ms:6.0f} | Refocus: {state.refocus_ms:6.0f} | "
              f"Reason: {state.last_reason}")
    elif tick.action is not None:
        print(f"Action: {tick.action.type} ({tick.action.reason or state.last_reason})")


def main():
    """Main function."""
    args = parse_arguments()
    apply_arguments(args)

    if not config.validate_config():
        sys.exit(2)

    print("=" * 60)
    print("FocusGuard")
    print("=" * 60)
    print(f"Camera: {config.camera.device_id}")
    print(f"Resolution: {config.camera.width}x{config.camera.height}")
    print(f"Target FPS: {config.camera.fps}")
    print(f"Redirect: {config.redirect.url}{' (dry run)' if config.redirect.dry_run else ''}")
    print(f"Personalized thresholds: {config.calibration.personalize_thresholds}")
    print("=" * 60)

    logger.log_system_info()

    provider = initialize_provider()
    if provider is None:
        print("Failed to initialize landmark models. Exiting.")
        sys.exit(1)

    cap = initialize_camera(config.camera.device_id, config.camera.width,
                            config.camera.height, config.camera.fps)
    if cap is None:
        provider.close()
        print("Failed to initialize camera. Exiting.")
        sys.exit(1)

    dispatcher = build_dispatcher()
    session = FocusSession(config, dispatcher=dispatcher)
    # A fresh controller tracks nothing; executors that persist a window across runs report it here
    session.sync_redirect_state(dispatcher.controller.get_redirect_state()['is_open'], monotonic_ms())

    frame_count = 0
    start_time = time.time()

    print("\n" + "=" * 60)
    print("Starting monitoring... sit naturally while calibrating")
    print("=" * 60)
    print("Controls:")
    print("  - Press 'q' or ESC to quit")
    print("=" * 60)
    print()

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                print("Error: Could not read frame")
                break

            face_landmarks, pose_landmarks = provider.process(frame)
            now_ms = monotonic_ms()
            tick = session.tick(face_landmarks, pose_landmarks, now_ms)

            frame_count += 1
            elapsed_time = time.time() - start_time
            fps = frame_count / elapsed_time if elapsed_time > 0 else 0

            print_status(tick, frame_count, fps, args.verbose)

            if not args.no_display:
                cv2.imshow("FocusGuard", draw_status(frame, session, tick, now_ms))

                key = cv2.waitKey(1) & 0xFF
                if key in QUIT_KEYS:
                    break
            elif config.camera.fps > 0:
                # Headless mode: throttle to target FPS
                time.sleep(1.0 / config.camera.fps)

    except KeyboardInterrupt:
        print("\nMonitoring interrupted by user")
    finally:
        cap.release()
        provider.close()
        cv2.destroyAllWindows()
        dispatcher.wait_idle(timeout=5.0)
        print("Monitoring ended")


if __name__ == "__main__":
    main()
