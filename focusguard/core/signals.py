"""
Focus Signal Classification

Compares smoothed face and torso metrics against the personal baseline and
turns the deviations into boolean attention signals plus a confidence score.
Stateless: every call depends only on its arguments.
"""

from typing import Any, Mapping, Optional

from .smoothing import clamp, safe_number
from .types import Baseline, FaceMetrics, FocusSignals, SignalThresholds, TorsoMetrics

MIN_DIVISOR = 1e-4

# Paired look-away rules: (primary norm, secondary norm) both at or above
LOOK_PAIR_PRIMARY = 1.08
LOOK_PAIR_YAW_SECONDARY = 0.52
LOOK_PAIR_EYE_SECONDARY = 0.4
LOOK_SCORE_YAW_WEIGHT = 0.72
LOOK_SCORE_EYE_WEIGHT = 0.64

PHONE_TORSO_DOWN_NORM = 0.7
PHONE_COMBINED_NORM = 2.45

# Face shrinking by more than this share of the baseline reads as leaning out of frame
FACE_SHRINK_RATIO = 0.35


def _norm(delta: float, threshold: float) -> float:
    return delta / max(MIN_DIVISOR, threshold)


def classify_focus_signals(
    face_metrics: Optional[FaceMetrics],
    torso_metrics: Optional[TorsoMetrics],
    baseline: Optional[Baseline] = None,
    thresholds: Optional[SignalThresholds] = None,
    presence: Optional[Mapping[str, Any]] = None,
) -> FocusSignals:
    """
    Classify one tick of smoothed metrics.

    Args:
        face_metrics: Smoothed face metrics, or None when no face was found
        torso_metrics: Smoothed torso metrics, or None when no torso was found
        baseline: Personal baseline (defaults before calibration)
        thresholds: Sensitivity profile
        presence: Optional 'face_present' / 'torso_present' booleans that
            override the detected presence

    Returns:
        FocusSignals with diagnostics in `deltas` and `quality`
    """
    base = baseline or Baseline()
    limits = thresholds or SignalThresholds()
    defaults = Baseline()
    presence = presence or {}

    base_torso_scale = safe_number(base.torso_scale, defaults.torso_scale)
    base_center_x = safe_number(base.torso_center_x, defaults.torso_center_x)
    base_center_y = safe_number(base.torso_center_y, defaults.torso_center_y)
    base_face_scale = safe_number(base.face_scale, defaults.face_scale)

    # Presence
    raw_face_present = face_metrics is not None
    raw_torso_visible_enough = (
        torso_metrics is not None
        and safe_number(torso_metrics.visibility_score, 0.0) >= limits.min_pose_visibility
    )

    torso_scale = safe_number(torso_metrics.torso_scale if torso_metrics else None, 0.0)
    torso_present_min = max(limits.min_torso_scale, base_torso_scale * limits.torso_present_ratio)
    torso_leave_min = max(limits.min_torso_scale, base_torso_scale * limits.torso_leave_ratio)
    raw_torso_present = raw_torso_visible_enough and torso_scale >= torso_present_min

    face_override = presence.get('face_present')
    torso_override = presence.get('torso_present')
    face_present = face_override if isinstance(face_override, bool) else raw_face_present
    torso_present = torso_override if isinstance(torso_override, bool) else raw_torso_present

    # Deltas against the baseline
    def face_value(name: str, fallback: float = 0.0) -> float:
        return safe_number(getattr(face_metrics, name, None), fallback)

    if face_present:
        yaw_delta = face_value("yaw") - safe_number(base.yaw)
        pitch_delta = face_value("pitch") - safe_number(base.pitch)
        eye_x_delta = face_value("eye_x") - safe_number(base.eye_x)
        eye_y_delta = face_value("eye_y") - safe_number(base.eye_y)
        face_scale_delta = face_value("face_scale") - base_face_scale
        eye_openness = face_value("eye_openness", safe_number(base.eye_openness, defaults.eye_openness))
    else:
        yaw_delta = pitch_delta = eye_x_delta = eye_y_delta = face_scale_delta = 0.0
        eye_openness = 0.0

    center_x = safe_number(torso_metrics.center_x if torso_metrics else None, base_center_x)
    center_y = safe_number(torso_metrics.center_y if torso_metrics else None, base_center_y)
    torso_center_x_delta = center_x - base_center_x
    torso_center_y_delta = center_y - base_center_y

    # Closed or occluded eyes give untrustworthy iris offsets
    eye_tracking_reliable = eye_openness >= limits.min_eye_openness

    # Look away
    yaw_norm = _norm(abs(yaw_delta), limits.yaw_away_delta)
    eye_norm = _norm(abs(eye_x_delta), limits.eye_x_away_delta)
    look_score = yaw_norm * LOOK_SCORE_YAW_WEIGHT + eye_norm * LOOK_SCORE_EYE_WEIGHT

    look_away = (
        face_present
        and eye_tracking_reliable
        and (
            (yaw_norm >= LOOK_PAIR_PRIMARY and eye_norm >= LOOK_PAIR_YAW_SECONDARY)
            or (eye_norm >= LOOK_PAIR_PRIMARY and yaw_norm >= LOOK_PAIR_EYE_SECONDARY)
            or look_score >= limits.look_score_threshold
            or yaw_norm >= limits.look_extreme_yaw
            or eye_norm >= limits.look_extreme_eye
        )
    )

    # Head dropped toward the lap
    pitch_norm = _norm(pitch_delta, limits.pitch_down_delta)
    eye_down_norm = _norm(eye_y_delta, limits.eye_y_down_delta)
    torso_down_norm = _norm(torso_center_y_delta, limits.torso_down_delta)

    phone_like_down = (
        face_present
        and eye_tracking_reliable
        and pitch_norm >= 1.0
        and eye_down_norm >= 1.0
        and (torso_down_norm >= PHONE_TORSO_DOWN_NORM or pitch_norm + eye_down_norm >= PHONE_COMBINED_NORM)
    )

    # Left the seat
    body_shifted = (
        abs(torso_center_x_delta) >= limits.body_shift_x_delta
        or abs(torso_center_y_delta) >= limits.body_shift_y_delta
    )

    left_seat_like = (
        (not face_present and not torso_present)
        or (not face_present and 0.0 < torso_scale < torso_leave_min)
        or (not face_present and body_shifted)
        or (face_present and not torso_present
            and face_scale_delta < -abs(base_face_scale) * FACE_SHRINK_RATIO)
    )

    confidence = 0.08
    if raw_face_present:
        confidence += 0.42
    if raw_torso_visible_enough:
        confidence += 0.24
    if raw_torso_present:
        confidence += 0.18
    if eye_tracking_reliable:
        confidence += 0.10
    elif face_present:
        confidence -= 0.08
    confidence = clamp(confidence, 0.0, 1.0)

    return FocusSignals(
        face_present=face_present,
        torso_present=torso_present,
        look_away=look_away,
        phone_like_down=phone_like_down,
        left_seat_like=left_seat_like,
        confidence=confidence,
        deltas={
            'yaw_delta': yaw_delta,
            'pitch_delta': pitch_delta,
            'eye_x_delta': eye_x_delta,
            'eye_y_delta': eye_y_delta,
            'torso_scale': torso_scale,
            'torso_center_x_delta': torso_center_x_delta,
            'torso_center_y_delta': torso_center_y_delta,
            'face_scale_delta': face_scale_delta,
            'eye_openness': eye_openness,
            'look_score': look_score,
        },
        quality={
            'raw_face_present': raw_face_present,
            'raw_torso_visible_enough': raw_torso_visible_enough,
            'raw_torso_present': raw_torso_present,
            'eye_tracking_reliable': eye_tracking_reliable,
            'body_shifted': body_shifted,
            'yaw_norm': yaw_norm,
            'eye_norm': eye_norm,
            'pitch_norm': pitch_norm,
            'eye_down_norm': eye_down_norm,
            'torso_down_norm': torso_down_norm,
        },
    )
