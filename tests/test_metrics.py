"""
Unit tests for landmark metric extraction.
"""

import sys
import os
import math
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from focusguard.core.metrics import (
    FACE_POINTS,
    compute_face_metrics,
    compute_torso_metrics,
    normalize_offset,
    safe_point,
)
from focusguard.core.types import Landmark


def build_face(**overrides):
    """Frontal face mesh with centred irises; overrides replace named points."""
    points = [Landmark(0.5, 0.5) for _ in range(478)]
    layout = {
        "nose_tip": (0.50, 0.52),
        "forehead": (0.50, 0.30),
        "chin": (0.50, 0.70),
        "left_outer": (0.40, 0.45),
        "left_inner": (0.46, 0.45),
        "right_inner": (0.54, 0.45),
        "right_outer": (0.60, 0.45),
        "left_upper": (0.43, 0.44),
        "left_lower": (0.43, 0.46),
        "right_upper": (0.57, 0.44),
        "right_lower": (0.57, 0.46),
        "left_iris": (0.43, 0.45),
        "right_iris": (0.57, 0.45),
    }
    layout.update(overrides)
    for name, (x, y) in layout.items():
        points[FACE_POINTS[name]] = Landmark(x, y)
    return points


def build_pose(visibility=(0.9, 0.8, 0.9, 0.7)):
    """Upright torso centred in the frame."""
    points = [Landmark(0.5, 0.5, 0.9) for _ in range(33)]
    joints = {11: (0.40, 0.40), 12: (0.60, 0.40), 23: (0.42, 0.80), 24: (0.58, 0.80)}
    for (index, (x, y)), vis in zip(joints.items(), visibility):
        points[index] = Landmark(x, y, vis)
    return points


class TestSafePoint(unittest.TestCase):
    """Test landmark access."""

    def test_reads_objects_and_mappings(self):
        """Test that attribute and mapping landmarks read the same."""
        self.assertEqual(safe_point([Landmark(0.1, 0.2, 0.3)], 0), (0.1, 0.2, 0.3))
        self.assertEqual(safe_point([{'x': 0.1, 'y': 0.2, 'visibility': 0.3}], 0), (0.1, 0.2, 0.3))

    def test_missing_visibility_reads_zero(self):
        """Test visibility default."""
        self.assertEqual(safe_point([{'x': 0.1, 'y': 0.2}], 0)[2], 0.0)

    def test_missing_or_invalid_points(self):
        """Test out-of-range indices and non-finite coordinates."""
        self.assertIsNone(safe_point(None, 0))
        self.assertIsNone(safe_point([], 0))
        self.assertIsNone(safe_point([Landmark(0.1, 0.2)], 3))
        self.assertIsNone(safe_point([Landmark(math.nan, 0.2)], 0))
        self.assertIsNone(safe_point([None], 0))


class TestNormalizeOffset(unittest.TestCase):
    """Test offset normalization."""

    def test_range(self):
        """Test edges, centre and clamping."""
        self.assertAlmostEqual(normalize_offset(0.4, 0.4, 0.6), -0.5)
        self.assertAlmostEqual(normalize_offset(0.5, 0.4, 0.6), 0.0)
        self.assertAlmostEqual(normalize_offset(0.6, 0.6, 0.4), 0.5)
        self.assertAlmostEqual(normalize_offset(2.0, 0.4, 0.6), 0.5)

    def test_degenerate_span(self):
        """Test that equal edges do not divide by zero."""
        self.assertTrue(math.isfinite(normalize_offset(0.5, 0.5, 0.5)))


class TestFaceMetrics(unittest.TestCase):
    """Test face metric extraction."""

    def test_frontal_face(self):
        """Test a frontal face with centred irises."""
        metrics = compute_face_metrics(build_face())

        self.assertIsNotNone(metrics)
        self.assertAlmostEqual(metrics.yaw, 0.0)
        self.assertAlmostEqual(metrics.pitch, 0.175)
        self.assertAlmostEqual(metrics.eye_x, 0.0)
        self.assertAlmostEqual(metrics.eye_y, 0.0)
        self.assertAlmostEqual(metrics.eye_openness, 1.0 / 3.0)
        self.assertAlmostEqual(metrics.face_scale, 0.328)

    def test_turned_head(self):
        """Test that moving the nose sideways changes yaw sign."""
        right = compute_face_metrics(build_face(nose_tip=(0.55, 0.52)))
        left = compute_face_metrics(build_face(nose_tip=(0.45, 0.52)))

        self.assertAlmostEqual(right.yaw, 0.05 / 0.14)
        self.assertAlmostEqual(left.yaw, -0.05 / 0.14)

    def test_gaze_shift(self):
        """Test iris offsets toward the outer corners."""
        metrics = compute_face_metrics(build_face(left_iris=(0.40, 0.45), right_iris=(0.60, 0.45)))
        self.assertAlmostEqual(metrics.eye_x, 0.0)

        looking_side = compute_face_metrics(build_face(left_iris=(0.46, 0.45), right_iris=(0.60, 0.45)))
        self.assertAlmostEqual(looking_side.eye_x, 0.5)

    def test_incomplete_mesh(self):
        """Test meshes without iris points."""
        self.assertIsNone(compute_face_metrics(None))
        self.assertIsNone(compute_face_metrics(build_face()[:468]))

    def test_non_finite_point(self):
        """Test that a corrupted required point means absence."""
        face = build_face()
        face[FACE_POINTS["chin"]] = Landmark(math.inf, 0.7)
        self.assertIsNone(compute_face_metrics(face))


class TestTorsoMetrics(unittest.TestCase):
    """Test torso metric extraction."""

    def test_upright_torso(self):
        """Test scale, visibility and centre."""
        metrics = compute_torso_metrics(build_pose())
        torso_height = math.hypot(0.02, 0.40)

        self.assertIsNotNone(metrics)
        self.assertAlmostEqual(metrics.torso_scale, 0.2 * 0.45 + torso_height * 0.45 + 0.16 * 0.1)
        self.assertAlmostEqual(metrics.visibility_score, 0.7)
        self.assertAlmostEqual(metrics.center_x, 0.5)
        self.assertAlmostEqual(metrics.center_y, 0.6)

    def test_missing_visibility(self):
        """Test that joints without visibility score zero."""
        pose = [{'x': p.x, 'y': p.y} for p in build_pose()]
        self.assertEqual(compute_torso_metrics(pose).visibility_score, 0.0)

    def test_incomplete_pose(self):
        """Test short or absent pose results."""
        self.assertIsNone(compute_torso_metrics(None))
        self.assertIsNone(compute_torso_metrics(build_pose()[:24]))


if __name__ == '__main__':
    unittest.main()
