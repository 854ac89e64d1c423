"""
Adaptive Threshold Builder

Derives a personal sensitivity profile from the spread of the calibration
samples. A user who fidgets more during calibration gets wider deltas, but
never narrower than the static defaults.

This is an explicit opt-in step; the live pipeline uses the static
defaults unless personalization is enabled.
"""

from dataclasses import asdict, replace
from typing import Dict, Iterable, Mapping, Optional

from .smoothing import clamp, median_absolute_deviation
from .types import Baseline, SignalThresholds

# (threshold field, sample channel, MAD scale, floor, min, max, fallback MAD)
DELTA_RULES = (
    ("yaw_away_delta", "yaw", 3.8, 0.035, 0.14, 0.42, 0.02),
    ("eye_x_away_delta", "eye_x", 3.9, 0.03, 0.12, 0.36, 0.02),
    ("pitch_down_delta", "pitch", 3.5, 0.04, 0.12, 0.35, 0.02),
    ("eye_y_down_delta", "eye_y", 3.6, 0.03, 0.08, 0.30, 0.02),
    ("torso_down_delta", "torso_center_y", 3.1, 0.024, 0.04, 0.22, 0.012),
    ("body_shift_x_delta", "torso_center_x", 4.4, 0.06, 0.12, 0.34, 0.012),
    ("body_shift_y_delta", "torso_center_y", 4.3, 0.05, 0.10, 0.34, 0.012),
)

# (ratio field, torso-scale MAD scale, min, max)
RATIO_RULES = (
    ("torso_present_ratio", 0.55, 0.50, 0.68),
    ("torso_leave_ratio", 0.40, 0.35, 0.58),
)

TORSO_SCALE_FALLBACK_MAD = 0.01


def build_adaptive_thresholds(
    samples: Optional[Mapping[str, Iterable[float]]] = None,
    baseline: Optional[Baseline] = None,
    defaults: Optional[SignalThresholds] = None,
) -> SignalThresholds:
    """
    Build personalized thresholds from calibration samples.

    Args:
        samples: Calibration samples per channel
        baseline: Finalized baseline the deviations are measured from
        defaults: Static thresholds used as the lower bound

    Returns:
        New SignalThresholds; fields without a rule keep their default
    """
    samples = samples or {}
    baseline = baseline or Baseline()
    defaults = defaults or SignalThresholds()
    pivots = asdict(baseline)

    changes: Dict[str, float] = {}
    for field_name, channel, scale, floor, low, high, fallback in DELTA_RULES:
        mad = median_absolute_deviation(samples.get(channel), pivots[channel], fallback)
        default = getattr(defaults, field_name)
        changes[field_name] = clamp(max(default, mad * scale + floor), low, high)

    torso_scale_mad = median_absolute_deviation(
        samples.get("torso_scale"), pivots["torso_scale"], TORSO_SCALE_FALLBACK_MAD
    )
    for field_name, scale, low, high in RATIO_RULES:
        changes[field_name] = clamp(getattr(defaults, field_name) + torso_scale_mad * scale, low, high)

    return replace(defaults, **changes)
