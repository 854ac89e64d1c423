"""
Calibration Module

Collects smoothed samples during a warm-up window and turns them into the
personal baseline the signal classifier compares against. The window is
extended once when too few good-quality frames arrive.
"""

from collections import deque
from dataclasses import asdict
from typing import Deque, Dict, List, Mapping, Optional

from .smoothing import is_finite, median, safe_number
from .types import Baseline, CalibrationSnapshot, FaceMetrics, TorsoMetrics, METRIC_CHANNELS
from ..utils.logger import get_logger

logger = get_logger(__name__)


class CalibrationEngine:
    """Accumulates calibration samples and finalizes a Baseline exactly once."""

    def __init__(
        self,
        duration_ms: float = 5000.0,
        extension_ms: float = 3000.0,
        min_samples: int = 45,
        buffer_limit: int = 1200,
        min_pose_visibility: float = 0.35,
        defaults: Optional[Baseline] = None,
    ):
        """
        Initialize the calibration engine.

        Args:
            duration_ms: Initial calibration window
            extension_ms: One-time extension when too few samples arrived
            min_samples: Samples needed to finalize without extending
            buffer_limit: Per-channel buffer size; oldest samples are dropped
            min_pose_visibility: Torso visibility a frame needs to be sampled
            defaults: Baseline values for channels without samples
        """
        self.duration_ms = max(0.0, safe_number(duration_ms, 5000.0))
        self.extension_ms = max(0.0, safe_number(extension_ms, 3000.0))
        self.min_samples = max(1, int(min_samples))
        self.min_pose_visibility = safe_number(min_pose_visibility, 0.35)
        self.defaults = defaults or Baseline()

        self.complete = False
        self.extended = False
        self.started_at: Optional[float] = None
        self.baseline: Optional[Baseline] = None
        self.buffers: Dict[str, Deque[float]] = {
            name: deque(maxlen=max(1, int(buffer_limit))) for name in METRIC_CHANNELS
        }

    @property
    def sample_count(self) -> int:
        return len(self.buffers["yaw"])

    @property
    def samples(self) -> Dict[str, List[float]]:
        """Copy of the collected samples per channel."""
        return {name: list(buffer) for name, buffer in self.buffers.items()}

    def update(
        self,
        now_ms: float,
        face_metrics: Optional[FaceMetrics],
        torso_metrics: Optional[TorsoMetrics],
        smoothed: Mapping[str, float],
    ) -> bool:
        """
        Feed one tick into the calibration window.

        Args:
            now_ms: Current time in milliseconds
            face_metrics: Raw face metrics for this tick (None when absent)
            torso_metrics: Raw torso metrics for this tick (None when absent)
            smoothed: Smoothed value per channel

        Returns:
            True when this tick finalized the baseline
        """
        if self.complete:
            return False

        now_ms = safe_number(now_ms, self.started_at if self.started_at is not None else 0.0)
        if self.started_at is None:
            self.started_at = now_ms

        torso_valid = (
            torso_metrics is not None
            and safe_number(torso_metrics.visibility_score, 0.0) >= self.min_pose_visibility
        )
        if face_metrics is not None and torso_valid:
            for name, buffer in self.buffers.items():
                value = smoothed.get(name)
                if is_finite(value):
                    buffer.append(float(value))

        elapsed = now_ms - self.started_at
        if elapsed < self.duration_ms:
            return False

        if self.sample_count >= self.min_samples or self.extended:
            self.finalize()
            return True

        self.duration_ms += self.extension_ms
        self.extended = True
        logger.log_calibration_extended(self.extension_ms, self.sample_count)
        return False

    def finalize(self) -> Baseline:
        """Compute the baseline as the median of each buffer; only the first call has effect."""
        if self.baseline is not None:
            return self.baseline

        defaults = asdict(self.defaults)
        self.baseline = Baseline(**{
            name: median(self.buffers[name], defaults[name]) for name in METRIC_CHANNELS
        })
        self.complete = True

        logger.log_calibration_complete(self.sample_count, self.baseline, self.extended)
        return self.baseline

    def snapshot(self, now_ms: float) -> CalibrationSnapshot:
        """Progress summary handed to the focus state machine."""
        if self.started_at is None:
            remaining_ms = self.duration_ms
        else:
            elapsed = max(0.0, safe_number(now_ms, self.started_at) - self.started_at)
            remaining_ms = max(0.0, self.duration_ms - elapsed)
        return CalibrationSnapshot(
            complete=self.complete,
            sample_count=self.sample_count,
            remaining_ms=remaining_ms,
            extended=self.extended,
        )
