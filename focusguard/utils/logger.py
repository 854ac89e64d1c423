"""
Logging utilities for the focus guard system.
"""

import logging
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .config import config


class FocusGuardLogger:
    """Custom logger for the focus guard system."""

    def __init__(self, name: str = "focusguard", log_file: Optional[str] = None):
        """Initialize the logger."""
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)
        # Module loggers live under "focusguard" and carry their own handlers
        self.logger.propagate = False

        # Prevent duplicate handlers
        if self.logger.handlers:
            return

        detailed_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
        )
        simple_formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s'
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(getattr(logging, config.logging.console_level.upper(), logging.ERROR))
        console_handler.setFormatter(simple_formatter)
        self.logger.addHandler(console_handler)

        if config.logging.enable_file_logging:
            if log_file is None:
                logs_dir = Path(config.logging.log_dir)
                logs_dir.mkdir(parents=True, exist_ok=True)
                timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
                log_file = logs_dir / f"focusguard_{timestamp}.log"

            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(detailed_formatter)
            self.logger.addHandler(file_handler)

    def debug(self, message: str) -> None:
        """Log debug message."""
        self.logger.debug(message)

    def info(self, message: str) -> None:
        """Log info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log error message."""
        self.logger.error(message)

    def critical(self, message: str) -> None:
        """Log critical message."""
        self.logger.critical(message)

    def log_calibration_extended(self, extension_ms: float, sample_count: int) -> None:
        """Log a calibration window extension."""
        self.warning(f"Calibration extended by {extension_ms:.0f}ms (samples={sample_count})")

    def log_calibration_complete(self, sample_count: int, baseline: Any, extended: bool) -> None:
        """Log calibration completion and the resulting baseline."""
        self.info(f"Calibration complete - Samples: {sample_count}, Extended: {extended}, "
                  f"Baseline: {baseline}")

    def log_redirect_action(self, action_type: str, result: Dict[str, Any],
                            reason: Optional[str] = None) -> None:
        """Log the outcome of an executor call."""
        message = f"Redirect {action_type} - Result: {result}"
        if reason:
            message += f", Reason: {reason}"
        self.info(message)

    def log_state_trace(self, trace: Dict[str, Any]) -> None:
        """Log a periodic state trace."""
        self.debug(f"State - {trace}")

    def log_error_with_context(self, error: Exception, context: str) -> None:
        """Log error with additional context."""
        self.error(f"Error in {context}: {error}")
        if error.__traceback__ is not None:
            tb = ''.join(traceback.format_exception(type(error), error, error.__traceback__))
            self.debug(f"Traceback: {tb}")

    def log_system_info(self) -> None:
        """Log runtime and configuration information."""
        import numpy as np

        self.info("=== System Information ===")
        self.info(f"Python Version: {sys.version}")
        self.info(f"NumPy Version: {np.__version__}")

        self.info("=== Configuration ===")
        self.info(f"Camera: {config.camera.width}x{config.camera.height} @ {config.camera.fps}fps")
        self.info(f"Calibration: {config.calibration.base_duration_ms:.0f}ms "
                  f"(+{config.calibration.extension_ms:.0f}ms, min {config.calibration.min_samples} samples)")
        self.info(f"Personalized thresholds: {'Enabled' if config.calibration.personalize_thresholds else 'Disabled'}")
        self.info(f"Open after {config.machine.off_focus_open_ms:.0f}ms off focus, "
                  f"close after {config.machine.refocus_close_ms:.0f}ms refocus")


# Global logger instance
logger = FocusGuardLogger()


def get_logger(name: str = "focusguard") -> FocusGuardLogger:
    """Get a logger instance."""
    return FocusGuardLogger(name)


def set_console_level(level: str) -> None:
    """Change the console level of every focusguard logger created so far."""
    config.logging.console_level = level
    numeric_level = getattr(logging, level.upper(), logging.ERROR)
    for name in list(logging.Logger.manager.loggerDict):
        if name != "focusguard" and not name.startswith("focusguard."):
            continue
        for handler in logging.getLogger(name).handlers:
            if type(handler) is logging.StreamHandler:
                handler.setLevel(numeric_level)
