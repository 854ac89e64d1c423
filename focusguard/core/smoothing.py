"""
Temporal Smoothing Module

Numeric helpers shared across the pipeline and the asymmetric exponential
smoother that carries per-channel state between ticks.
"""

import math
from dataclasses import asdict
from typing import Dict, Iterable, Optional, Tuple

import numpy as np

from .types import Baseline, METRIC_CHANNELS

# (alpha_rise, alpha_fall) per channel
DEFAULT_SMOOTHING_RATES: Dict[str, Tuple[float, float]] = {
    "yaw": (0.30, 0.13),
    "pitch": (0.28, 0.13),
    "eye_x": (0.28, 0.14),
    "eye_y": (0.28, 0.14),
    "torso_scale": (0.26, 0.16),
    "torso_center_x": (0.20, 0.15),
    "torso_center_y": (0.20, 0.15),
    "face_scale": (0.24, 0.14),
    "eye_openness": (0.24, 0.18),
}


def is_finite(value) -> bool:
    """True for real numbers that are neither NaN nor infinite."""
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def safe_number(value, fallback: float = 0.0) -> float:
    """Return value as float, or fallback when it is missing or non-finite."""
    if value is None or isinstance(value, bool) or not is_finite(value):
        return fallback
    return float(value)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value to [low, high]. NaN maps to low."""
    if value != value:
        return low
    return max(low, min(high, value))


def _finite_values(values: Optional[Iterable[float]]) -> np.ndarray:
    if values is None:
        return np.empty(0)
    array = np.asarray([safe_number(v, math.nan) for v in values], dtype=float)
    return array[np.isfinite(array)]


def median(values: Optional[Iterable[float]], fallback: float = 0.0) -> float:
    """Median of the finite values, or fallback when there are none."""
    array = _finite_values(values)
    if array.size == 0:
        return fallback
    return float(np.median(array))


def median_absolute_deviation(values: Optional[Iterable[float]],
                              pivot: Optional[float] = None,
                              fallback: float = 0.0) -> float:
    """
    Median absolute deviation around pivot.

    Args:
        values: Samples
        pivot: Centre to measure from; the sample median when not finite
        fallback: Returned when there are no finite samples

    Returns:
        MAD of the samples
    """
    array = _finite_values(values)
    if array.size == 0:
        return fallback
    center = float(pivot) if is_finite(pivot) else float(np.median(array))
    return float(np.median(np.abs(array - center)))


class EmaSmoother:
    """Exponential moving average with separate rise and fall rates."""

    def __init__(self, initial: float = 0.0, alpha_rise: float = 0.28, alpha_fall: float = 0.12):
        self.value = safe_number(initial, 0.0)
        self.alpha_rise = clamp(safe_number(alpha_rise, 0.28), 0.01, 1.0)
        self.alpha_fall = clamp(safe_number(alpha_fall, 0.12), 0.01, 1.0)

    def step(self, target: Optional[float]) -> float:
        """Move toward target; a missing or non-finite target holds the current value."""
        if not is_finite(target):
            return self.value
        target = float(target)
        alpha = self.alpha_rise if target > self.value else self.alpha_fall
        self.value += (target - self.value) * alpha
        return self.value


class MetricSmoother:
    """One EmaSmoother per tracked channel, seeded from the default baseline."""

    def __init__(self, rates: Optional[Dict[str, Tuple[float, float]]] = None,
                 initial: Optional[Baseline] = None):
        resolved_rates = dict(DEFAULT_SMOOTHING_RATES)
        resolved_rates.update(rates or {})
        seeds = asdict(initial or Baseline())

        self.channels: Dict[str, EmaSmoother] = {}
        for name in METRIC_CHANNELS:
            alpha_rise, alpha_fall = resolved_rates[name]
            self.channels[name] = EmaSmoother(seeds[name], alpha_rise, alpha_fall)

    def step(self, targets: Dict[str, Optional[float]]) -> Dict[str, float]:
        """
        Advance every channel by one tick.

        Args:
            targets: Raw value per channel; missing or None entries hold

        Returns:
            Smoothed value per channel
        """
        return {
            name: smoother.step(targets.get(name))
            for name, smoother in self.channels.items()
        }

    def values(self) -> Dict[str, float]:
        """Current smoothed value per channel."""
        return {name: smoother.value for name, smoother in self.channels.items()}
