"""
Metric Extraction Module

Maps face-mesh and body-pose landmark sequences to a handful of normalized
scalars. Missing landmarks are not an error: the functions return None and
downstream stages treat that as absence.
"""

import math
from typing import Any, Mapping, Optional, Sequence, Tuple

from .smoothing import clamp, is_finite, safe_number
from .types import FaceMetrics, TorsoMetrics

# Canonical MediaPipe Face Mesh indices (refined mesh, 478 points)
FACE_POINTS = {
    "nose_tip": 1,
    "forehead": 10,
    "chin": 152,
    "left_outer": 33,
    "left_inner": 133,
    "right_inner": 362,
    "right_outer": 263,
    "left_upper": 159,
    "left_lower": 145,
    "right_upper": 386,
    "right_lower": 374,
    "left_iris": 468,
    "right_iris": 473,
}

# Canonical MediaPipe Pose indices (33 points)
POSE_POINTS = {
    "left_shoulder": 11,
    "right_shoulder": 12,
    "left_hip": 23,
    "right_hip": 24,
}

MIN_SPAN = 1e-4


def _field(point: Any, name: str) -> Any:
    if isinstance(point, Mapping):
        return point.get(name)
    return getattr(point, name, None)


def safe_point(landmarks: Optional[Sequence[Any]], index: int) -> Optional[Tuple[float, float, float]]:
    """
    Read landmark `index` as (x, y, visibility).

    Landmarks may be objects with x/y/visibility attributes (MediaPipe) or
    mappings with the same keys. Returns None when the point is missing or
    its coordinates are not finite. Missing visibility reads as 0.
    """
    if landmarks is None or index < 0 or len(landmarks) <= index:
        return None
    point = landmarks[index]
    if point is None:
        return None
    x = _field(point, "x")
    y = _field(point, "y")
    if not is_finite(x) or not is_finite(y):
        return None
    visibility = safe_number(_field(point, "visibility"), 0.0)
    return float(x), float(y), visibility


def distance_2d(a: Tuple[float, ...], b: Tuple[float, ...]) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def normalize_offset(value: float, edge_a: float, edge_b: float) -> float:
    """Position of value inside [edge_a, edge_b], mapped to [-0.5, 0.5]."""
    low = min(edge_a, edge_b)
    high = max(edge_a, edge_b)
    span = max(MIN_SPAN, high - low)
    return (clamp(value, low, high) - low) / span - 0.5


def compute_face_metrics(face_landmarks: Optional[Sequence[Any]]) -> Optional[FaceMetrics]:
    """
    Compute head orientation, gaze and scale metrics from a face mesh.

    Args:
        face_landmarks: Face mesh landmarks in canonical order

    Returns:
        FaceMetrics, or None when any required landmark is missing
    """
    if face_landmarks is None or len(face_landmarks) <= FACE_POINTS["right_iris"]:
        return None

    points = {name: safe_point(face_landmarks, index) for name, index in FACE_POINTS.items()}
    if any(point is None for point in points.values()):
        return None

    nose_tip = points["nose_tip"]
    forehead = points["forehead"]
    chin = points["chin"]
    left_outer, left_inner = points["left_outer"], points["left_inner"]
    right_outer, right_inner = points["right_outer"], points["right_inner"]
    left_upper, left_lower = points["left_upper"], points["left_lower"]
    right_upper, right_lower = points["right_upper"], points["right_lower"]
    left_iris, right_iris = points["left_iris"], points["right_iris"]

    left_eye_center_x = (left_outer[0] + left_inner[0]) * 0.5
    right_eye_center_x = (right_outer[0] + right_inner[0]) * 0.5
    eye_center_x = (left_eye_center_x + right_eye_center_x) * 0.5
    eye_center_y = (left_upper[1] + left_lower[1] + right_upper[1] + right_lower[1]) * 0.25

    face_height = max(MIN_SPAN, abs(chin[1] - forehead[1]))
    face_width = max(MIN_SPAN, abs(right_outer[0] - left_outer[0]))
    eye_distance = max(MIN_SPAN, abs(right_eye_center_x - left_eye_center_x))

    yaw = (nose_tip[0] - eye_center_x) / eye_distance
    pitch = (nose_tip[1] - eye_center_y) / face_height

    eye_x = (normalize_offset(left_iris[0], left_outer[0], left_inner[0]) +
             normalize_offset(right_iris[0], right_outer[0], right_inner[0])) * 0.5
    eye_y = (normalize_offset(left_iris[1], left_upper[1], left_lower[1]) +
             normalize_offset(right_iris[1], right_upper[1], right_lower[1])) * 0.5

    left_open = abs(left_lower[1] - left_upper[1]) / max(MIN_SPAN, abs(left_inner[0] - left_outer[0]))
    right_open = abs(right_lower[1] - right_upper[1]) / max(MIN_SPAN, abs(right_inner[0] - right_outer[0]))
    eye_openness = clamp((left_open + right_open) * 0.5, 0.0, 1.0)

    return FaceMetrics(
        yaw=yaw,
        pitch=pitch,
        eye_x=eye_x,
        eye_y=eye_y,
        eye_openness=eye_openness,
        face_scale=face_height * 0.64 + face_width * 0.36,
    )


def compute_torso_metrics(pose_landmarks: Optional[Sequence[Any]]) -> Optional[TorsoMetrics]:
    """
    Compute torso size, visibility and centre from body-pose landmarks.

    Args:
        pose_landmarks: Pose landmarks in canonical order

    Returns:
        TorsoMetrics, or None when a shoulder or hip is missing
    """
    if pose_landmarks is None or len(pose_landmarks) <= POSE_POINTS["right_hip"]:
        return None

    left_shoulder = safe_point(pose_landmarks, POSE_POINTS["left_shoulder"])
    right_shoulder = safe_point(pose_landmarks, POSE_POINTS["right_shoulder"])
    left_hip = safe_point(pose_landmarks, POSE_POINTS["left_hip"])
    right_hip = safe_point(pose_landmarks, POSE_POINTS["right_hip"])

    joints = (left_shoulder, right_shoulder, left_hip, right_hip)
    if any(joint is None for joint in joints):
        return None

    visibility_score = min(joint[2] for joint in joints)

    shoulder_width = distance_2d(left_shoulder, right_shoulder)
    torso_height = (distance_2d(left_shoulder, left_hip) + distance_2d(right_shoulder, right_hip)) * 0.5
    hip_width = distance_2d(left_hip, right_hip)

    return TorsoMetrics(
        torso_scale=shoulder_width * 0.45 + torso_height * 0.45 + hip_width * 0.1,
        visibility_score=visibility_score,
        center_x=sum(joint[0] for joint in joints) * 0.25,
        center_y=sum(joint[1] for joint in joints) * 0.25,
    )
