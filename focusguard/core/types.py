"""
Data Model

Value types shared by the metric extractor, smoother, calibration engine,
signal classifier and focus state machine. Everything that must stay fixed
for a session (baseline, thresholds, machine config) or that is handed from
one tick to the next (machine state) is a frozen dataclass.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, Any, Optional


class Phase:
    """Focus state machine phases."""
    CALIBRATING = "calibrating"
    FOCUSED = "focused"
    OFF_FOCUS_PENDING = "off_focus_pending"
    OFF_FOCUS_OPENED = "off_focus_opened"
    REFOCUS_PENDING = "refocus_pending"


OPEN_REDIRECT = "open_redirect"
CLOSE_REDIRECT = "close_redirect"

# Channels carried by the temporal smoother and the calibration buffers
METRIC_CHANNELS = (
    "yaw",
    "pitch",
    "eye_x",
    "eye_y",
    "torso_scale",
    "torso_center_x",
    "torso_center_y",
    "face_scale",
    "eye_openness",
)


@dataclass(frozen=True)
class Landmark:
    """Normalized 2-D landmark as produced by the landmark provider."""
    x: float
    y: float
    visibility: Optional[float] = None


@dataclass(frozen=True)
class FaceMetrics:
    """Frame-local face geometry."""
    yaw: float
    pitch: float
    eye_x: float
    eye_y: float
    eye_openness: float
    face_scale: float


@dataclass(frozen=True)
class TorsoMetrics:
    """Frame-local torso geometry."""
    torso_scale: float
    visibility_score: float
    center_x: float
    center_y: float


@dataclass(frozen=True)
class Baseline:
    """Personal reference value per tracked channel."""
    yaw: float = 0.0
    pitch: float = 0.0
    eye_x: float = 0.0
    eye_y: float = 0.0
    torso_scale: float = 0.18
    torso_center_x: float = 0.5
    torso_center_y: float = 0.6
    face_scale: float = 0.24
    eye_openness: float = 0.03


@dataclass(frozen=True)
class SignalThresholds:
    """Sensitivity parameters used by the signal classifier."""
    min_pose_visibility: float = 0.35
    yaw_away_delta: float = 0.16
    eye_x_away_delta: float = 0.14
    look_score_threshold: float = 1.42
    look_extreme_yaw: float = 1.5
    look_extreme_eye: float = 1.22
    pitch_down_delta: float = 0.14
    eye_y_down_delta: float = 0.1
    torso_down_delta: float = 0.055
    torso_present_ratio: float = 0.55
    torso_leave_ratio: float = 0.45
    min_torso_scale: float = 0.075
    body_shift_x_delta: float = 0.2
    body_shift_y_delta: float = 0.16
    min_eye_openness: float = 0.012


@dataclass(frozen=True)
class MachineConfig:
    """Dwell thresholds and evidence multipliers for the focus state machine."""
    off_focus_open_ms: float = 8000.0
    refocus_close_ms: float = 3000.0
    min_open_ms: float = 4000.0
    reopen_guard_ms: float = 2000.0
    hard_evidence_multiplier: float = 1.45
    soft_evidence_multiplier: float = 1.0
    evidence_decay_multiplier: float = 1.8
    refocus_decay_multiplier: float = 1.6
    max_dt_ms: float = 200.0


@dataclass(frozen=True)
class FocusSignals:
    """Per-tick output of the signal classifier."""
    face_present: bool = False
    torso_present: bool = False
    look_away: bool = False
    phone_like_down: bool = False
    left_seat_like: bool = False
    confidence: float = 0.0
    deltas: Dict[str, float] = field(default_factory=dict)
    quality: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        """Boolean signals and confidence, without diagnostics."""
        return {
            'face_present': self.face_present,
            'torso_present': self.torso_present,
            'look_away': self.look_away,
            'phone_like_down': self.phone_like_down,
            'left_seat_like': self.left_seat_like,
            'confidence': round(self.confidence, 2),
        }


@dataclass(frozen=True)
class CalibrationSnapshot:
    """What the state machine needs to know about calibration progress."""
    complete: bool = False
    sample_count: int = 0
    remaining_ms: float = 5000.0
    extended: bool = False


@dataclass(frozen=True)
class FocusMachineState:
    """Immutable state snapshot consumed and returned by the transition function."""
    phase: str = Phase.CALIBRATING
    off_focus_ms: float = 0.0
    refocus_ms: float = 0.0
    redirect_open: bool = False
    last_reason: str = "calibrating"
    calibration: CalibrationSnapshot = field(default_factory=CalibrationSnapshot)
    last_opened_at: float = 0.0
    last_closed_at: float = -math.inf


@dataclass(frozen=True)
class RedirectAction:
    """Recommendation emitted by the state machine for the executor."""
    type: str
    reason: Optional[str] = None
