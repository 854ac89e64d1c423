"""
Configuration management for the focus guard system.
"""

import os
import json
from dataclasses import dataclass, field, fields, replace, asdict
from typing import Dict, Any, Optional, Tuple, Mapping

from ..core.types import Baseline, SignalThresholds, MachineConfig
from ..core.smoothing import DEFAULT_SMOOTHING_RATES, safe_number


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: int = 0
    width: int = 1280
    height: int = 720
    fps: int = 30


@dataclass
class SmoothingConfig:
    """Per-channel (alpha_rise, alpha_fall) rates for the temporal smoother."""
    rates: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: dict(DEFAULT_SMOOTHING_RATES)
    )


@dataclass
class CalibrationConfig:
    """Calibration window settings."""
    base_duration_ms: float = 5000.0
    extension_ms: float = 3000.0
    min_samples: int = 45
    buffer_limit: int = 1200
    personalize_thresholds: bool = False


@dataclass
class RedirectConfig:
    """Redirect executor settings."""
    url: str = "https://careers.mcdonalds.com/"
    app_data_dir: str = os.path.join(os.path.expanduser("~"), ".focusguard")
    profile_dir_name: str = "focusguard-browser-profile"
    open_failure_rollback_ms: float = 450.0
    dry_run: bool = False


@dataclass
class LoggingConfig:
    """Logging settings."""
    enable_file_logging: bool = False
    log_dir: str = "logs"
    console_level: str = "ERROR"
    trace_interval_ms: float = 1400.0


SECTION_NAMES = ('camera', 'smoothing', 'calibration', 'redirect', 'logging',
                 'baseline', 'thresholds', 'machine')


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    print(f"Warning: Expected true or false, got {value!r}; keeping {default}")
    return default


def _coerce(value: Any, default: Any) -> Any:
    """Coerce an override to the type of the default it replaces."""
    if isinstance(default, bool):
        return _coerce_bool(value, default)
    if isinstance(default, int):
        number = safe_number(value, float(default))
        return int(number)
    if isinstance(default, float):
        return safe_number(value, default)
    if isinstance(default, dict):
        merged = dict(default)
        if isinstance(value, Mapping):
            for key, item in value.items():
                if key not in merged:
                    print(f"Warning: Ignoring unknown entry {key!r}")
                    continue
                if isinstance(merged[key], tuple):
                    if not isinstance(item, (list, tuple)) or len(item) != len(merged[key]):
                        print(f"Warning: Expected {len(merged[key])} values for {key!r}, got {item!r}; keeping defaults")
                        continue
                    merged[key] = tuple(safe_number(v, d) for v, d in zip(item, merged[key]))
                else:
                    merged[key] = item
        return merged
    if isinstance(default, str):
        return str(value)
    return value


def merge_dataclass(instance: Any, overrides: Optional[Mapping[str, Any]]) -> Any:
    """
    Merge a flat mapping of named fields over a dataclass instance.

    Unknown keys are ignored, values are coerced to the existing field type and
    non-finite numbers keep the current value. Works for frozen dataclasses.

    Args:
        instance: Dataclass instance holding the current values
        overrides: Field name to value mapping

    Returns:
        New instance of the same type
    """
    if not overrides:
        return instance
    known = {f.name for f in fields(instance)}
    changes = {
        key: _coerce(value, getattr(instance, key))
        for key, value in overrides.items()
        if key in known
    }
    return replace(instance, **changes)


class Config:
    """Main configuration class for the focus guard system."""

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration with optional config file."""
        self.camera = CameraConfig()
        self.smoothing = SmoothingConfig()
        self.calibration = CalibrationConfig()
        self.redirect = RedirectConfig()
        self.logging = LoggingConfig()
        self.baseline = Baseline()
        self.thresholds = SignalThresholds()
        self.machine = MachineConfig()

        if config_file and os.path.exists(config_file):
            self.load_from_file(config_file)

    def load_from_file(self, config_file: str) -> bool:
        """Load configuration from JSON file, merging over current values."""
        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"Warning: Could not load config file {config_file}: {e}")
            return False

        if not isinstance(config_data, dict):
            print(f"Warning: Config file {config_file} does not contain an object")
            return False

        for section_name, section_data in config_data.items():
            if section_name in SECTION_NAMES and isinstance(section_data, dict):
                section = getattr(self, section_name)
                setattr(self, section_name, merge_dataclass(section, section_data))
        return True

    def save_to_file(self, config_file: str) -> bool:
        """Save current configuration to JSON file."""
        config_data = {
            section_name: asdict(getattr(self, section_name))
            for section_name in SECTION_NAMES
        }

        try:
            directory = os.path.dirname(config_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(config_file, 'w') as f:
                json.dump(config_data, f, indent=2)
        except OSError as e:
            print(f"Warning: Could not save config file {config_file}: {e}")
            return False
        return True

    def validate_config(self) -> bool:
        """Validate configuration settings."""
        errors = []

        # Camera
        if self.camera.width <= 0 or self.camera.height <= 0:
            errors.append("Camera dimensions must be positive")
        if self.camera.fps <= 0:
            errors.append("Camera FPS must be positive")

        # Smoothing
        for channel, rates in self.smoothing.rates.items():
            if len(rates) != 2 or not all(0.0 < rate <= 1.0 for rate in rates):
                errors.append(f"Smoothing rates for {channel} must be two values in (0, 1]")

        # Calibration
        if self.calibration.base_duration_ms <= 0:
            errors.append("Calibration duration must be positive")
        if self.calibration.extension_ms < 0:
            errors.append("Calibration extension must not be negative")
        if self.calibration.min_samples < 1 or self.calibration.buffer_limit < 1:
            errors.append("Calibration sample limits must be at least 1")

        # Machine
        if self.machine.off_focus_open_ms <= 0 or self.machine.refocus_close_ms <= 0:
            errors.append("Dwell thresholds must be positive")
        if self.machine.min_open_ms < 0 or self.machine.reopen_guard_ms < 0:
            errors.append("Guard durations must not be negative")
        multipliers = (
            self.machine.hard_evidence_multiplier,
            self.machine.soft_evidence_multiplier,
            self.machine.evidence_decay_multiplier,
            self.machine.refocus_decay_multiplier,
        )
        if any(multiplier < 0 for multiplier in multipliers):
            errors.append("Evidence multipliers must not be negative")

        # Thresholds
        if not 0.0 <= self.thresholds.min_pose_visibility <= 1.0:
            errors.append("Minimum pose visibility must be between 0 and 1")
        if self.thresholds.torso_leave_ratio > self.thresholds.torso_present_ratio:
            errors.append("Torso leave ratio must not exceed torso present ratio")

        if errors:
            print("Configuration validation errors:")
            for error in errors:
                print(f"  - {error}")
            return False

        return True


# Global configuration instance
config = Config()

# Default configuration file path
DEFAULT_CONFIG_FILE = "data/configs/default_config.json"

if os.path.exists(DEFAULT_CONFIG_FILE):
    config.load_from_file(DEFAULT_CONFIG_FILE)
