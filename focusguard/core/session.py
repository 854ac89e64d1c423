"""
Focus Session

Explicit per-session context: owns the temporal smoother, the calibration
engine, the frozen baseline and thresholds, and the current state machine
snapshot. One call to `tick` advances the whole pipeline by one frame:

    landmarks -> metrics -> smoothing -> calibration -> classification
              -> state machine -> (optional) dispatched action
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from .calibration import CalibrationEngine
from .metrics import compute_face_metrics, compute_torso_metrics
from .redirect import ExecutorOutcome, RedirectDispatcher
from .signals import classify_focus_signals
from .smoothing import MetricSmoother, is_finite
from .state_machine import (
    StepResult,
    adopt_open_redirect,
    correct_failed_open,
    create_focus_state,
    step_focus_state,
)
from .thresholds import build_adaptive_thresholds
from .types import (
    Baseline,
    CalibrationSnapshot,
    FaceMetrics,
    FocusMachineState,
    FocusSignals,
    RedirectAction,
    SignalThresholds,
    TorsoMetrics,
    OPEN_REDIRECT,
)
from ..utils.config import Config, config as default_config
from ..utils.logger import get_logger

logger = get_logger(__name__)

FIRST_FRAME_DT_MS = 16.7
MAX_FRAME_DT_MS = 100.0


@dataclass(frozen=True)
class TickResult:
    """Everything produced by one tick."""
    state: FocusMachineState
    action: Optional[RedirectAction]
    signals: FocusSignals
    smoothed: Dict[str, float]
    face_metrics: Optional[FaceMetrics] = None
    torso_metrics: Optional[TorsoMetrics] = None


def _smoothing_targets(face: Optional[FaceMetrics], torso: Optional[TorsoMetrics]) -> Dict[str, Optional[float]]:
    targets: Dict[str, Optional[float]] = {}
    if face is not None:
        targets.update({
            "yaw": face.yaw,
            "pitch": face.pitch,
            "eye_x": face.eye_x,
            "eye_y": face.eye_y,
            "face_scale": face.face_scale,
            "eye_openness": face.eye_openness,
        })
    if torso is not None:
        targets.update({
            "torso_scale": torso.torso_scale,
            "torso_center_x": torso.center_x,
            "torso_center_y": torso.center_y,
        })
    return targets


class FocusSession:
    """Session context advancing the focus pipeline one frame at a time."""

    def __init__(
        self,
        cfg: Optional[Config] = None,
        dispatcher: Optional[RedirectDispatcher] = None,
        personalize: Optional[bool] = None,
    ):
        """
        Initialize a session.

        Args:
            cfg: Configuration; the global config when omitted. Read once here.
            dispatcher: Executor dispatcher for emitted actions (optional)
            personalize: Derive adaptive thresholds at calibration end;
                overrides cfg.calibration.personalize_thresholds when given
        """
        cfg = cfg or default_config
        self.machine_config = cfg.machine
        self.default_thresholds: SignalThresholds = cfg.thresholds
        self.default_baseline: Baseline = cfg.baseline
        self.personalize = cfg.calibration.personalize_thresholds if personalize is None else personalize
        self.rollback_ms = cfg.redirect.open_failure_rollback_ms
        self.trace_interval_ms = cfg.logging.trace_interval_ms
        self.dispatcher = dispatcher

        self.smoother = MetricSmoother(cfg.smoothing.rates, cfg.baseline)
        self.calibration = CalibrationEngine(
            duration_ms=cfg.calibration.base_duration_ms,
            extension_ms=cfg.calibration.extension_ms,
            min_samples=cfg.calibration.min_samples,
            buffer_limit=cfg.calibration.buffer_limit,
            min_pose_visibility=cfg.thresholds.min_pose_visibility,
            defaults=cfg.baseline,
        )

        self.baseline: Baseline = cfg.baseline
        self.thresholds: SignalThresholds = cfg.thresholds
        self.state: FocusMachineState = create_focus_state()
        self.previous_frame_at: Optional[float] = None
        self.last_trace_at = -math.inf
        self.last_signals: Optional[FocusSignals] = None

        logger.info(f"Focus session created (personalized thresholds: {self.personalize})")

    def frame_dt(self, now_ms: float) -> float:
        """Time since the previous frame, capped to bound frame stalls."""
        if self.previous_frame_at is None or not is_finite(now_ms):
            return FIRST_FRAME_DT_MS
        return max(0.0, min(MAX_FRAME_DT_MS, now_ms - self.previous_frame_at))

    def tick(
        self,
        face_landmarks: Optional[Sequence[Any]],
        pose_landmarks: Optional[Sequence[Any]],
        now_ms: float,
        dt_ms: Optional[float] = None,
    ) -> TickResult:
        """
        Advance the session by one frame of landmarks.

        Args:
            face_landmarks: Face mesh landmarks, or None when no face was detected
            pose_landmarks: Pose landmarks, or None when no body was detected
            now_ms: Frame timestamp in milliseconds
            dt_ms: Frame interval; derived from consecutive timestamps when None

        Returns:
            TickResult for this frame
        """
        face_metrics = compute_face_metrics(face_landmarks)
        torso_metrics = compute_torso_metrics(pose_landmarks)
        return self.process_metrics(face_metrics, torso_metrics, now_ms, dt_ms)

    def process_metrics(
        self,
        face_metrics: Optional[FaceMetrics],
        torso_metrics: Optional[TorsoMetrics],
        now_ms: float,
        dt_ms: Optional[float] = None,
    ) -> TickResult:
        """Advance the session by one frame of already-extracted metrics."""
        self.apply_outcomes()

        if dt_ms is None:
            dt_ms = self.frame_dt(now_ms)
        if is_finite(now_ms):
            self.previous_frame_at = now_ms

        smoothed = self.smoother.step(_smoothing_targets(face_metrics, torso_metrics))

        if not self.calibration.complete:
            if self.calibration.update(now_ms, face_metrics, torso_metrics, smoothed):
                self._freeze_calibration()

        smoothed_face = None
        if face_metrics is not None:
            smoothed_face = FaceMetrics(
                yaw=smoothed["yaw"],
                pitch=smoothed["pitch"],
                eye_x=smoothed["eye_x"],
                eye_y=smoothed["eye_y"],
                eye_openness=smoothed["eye_openness"],
                face_scale=smoothed["face_scale"],
            )
        smoothed_torso = None
        if torso_metrics is not None:
            smoothed_torso = TorsoMetrics(
                torso_scale=smoothed["torso_scale"],
                visibility_score=torso_metrics.visibility_score,
                center_x=smoothed["torso_center_x"],
                center_y=smoothed["torso_center_y"],
            )

        signals = classify_focus_signals(smoothed_face, smoothed_torso, self.baseline, self.thresholds)
        self.last_signals = signals

        result: StepResult = step_focus_state(
            self.state,
            dt_ms,
            now_ms,
            signals,
            self.calibration.snapshot(now_ms),
            self.machine_config,
        )
        self.state = result.state

        if result.action is not None and self.dispatcher is not None:
            # Open outcomes are matched against last_opened_at to detect staleness
            issued_at = self.state.last_opened_at if result.action.type == OPEN_REDIRECT else now_ms
            self.dispatcher.submit(result.action, issued_at=issued_at)

        self.maybe_trace(now_ms)

        return TickResult(
            state=self.state,
            action=result.action,
            signals=signals,
            smoothed=smoothed,
            face_metrics=face_metrics,
            torso_metrics=torso_metrics,
        )

    def _freeze_calibration(self) -> None:
        """Fix the baseline, and optionally the personalized thresholds, for the session."""
        self.baseline = self.calibration.baseline
        if self.personalize:
            self.thresholds = build_adaptive_thresholds(
                self.calibration.samples, self.baseline, self.default_thresholds
            )
            logger.info(f"Adaptive thresholds derived: {self.thresholds}")

    def apply_outcomes(self) -> None:
        """Apply executor outcomes reported since the previous tick."""
        if self.dispatcher is None:
            return
        for outcome in self.dispatcher.drain():
            self.apply_outcome(outcome)

    def apply_outcome(self, outcome: ExecutorOutcome) -> FocusMachineState:
        """
        Correct the machine state after a failed open.

        A stale outcome (for an open the machine has since closed or replaced)
        is ignored. Close failures are only logged by the dispatcher.
        """
        if outcome.action.type != OPEN_REDIRECT:
            return self.state

        result = outcome.result or {}
        failed = outcome.error is not None or (not result.get('opened') and not result.get('pid'))
        if not failed:
            return self.state

        current = (
            self.state.redirect_open
            and (outcome.issued_at is None or outcome.issued_at == self.state.last_opened_at)
        )
        if not current:
            logger.debug("Ignoring stale open failure")
            return self.state

        self.state = correct_failed_open(self.state, self.rollback_ms)
        logger.warning(f"Redirect open failed, off-focus dwell rolled back to {self.state.off_focus_ms:.0f}ms")
        return self.state

    def sync_redirect_state(self, is_open: bool, now_ms: float) -> FocusMachineState:
        """Adopt a redirect the executor reports as already open at start-up."""
        if is_open and not self.state.redirect_open:
            self.state = adopt_open_redirect(self.state, now_ms)
            logger.info("Adopted redirect already open at start-up")
        return self.state

    def calibration_snapshot(self, now_ms: float) -> CalibrationSnapshot:
        return self.calibration.snapshot(now_ms)

    def trace(self, now_ms: float) -> Dict[str, Any]:
        """Compact view of the session state for diagnostics."""
        return {
            'phase': self.state.phase,
            'off_focus_ms': round(self.state.off_focus_ms),
            'refocus_ms': round(self.state.refocus_ms),
            'reason': self.state.last_reason,
            'redirect_open': self.state.redirect_open,
            'calibration': self.calibration.snapshot(now_ms),
            'signals': self.last_signals.summary() if self.last_signals else None,
        }

    def maybe_trace(self, now_ms: float) -> None:
        if not is_finite(now_ms) or now_ms - self.last_trace_at < self.trace_interval_ms:
            return
        self.last_trace_at = now_ms
        logger.log_state_trace(self.trace(now_ms))
