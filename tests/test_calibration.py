"""
Unit tests for the calibration engine.
"""

import sys
import os
import unittest
from dataclasses import asdict

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from focusguard.core.calibration import CalibrationEngine
from focusguard.core.smoothing import median
from focusguard.core.types import Baseline, FaceMetrics, TorsoMetrics, METRIC_CHANNELS

FACE = FaceMetrics(yaw=0.0, pitch=0.1, eye_x=0.0, eye_y=0.0, eye_openness=0.3, face_scale=0.3)
TORSO = TorsoMetrics(torso_scale=0.25, visibility_score=0.9, center_x=0.5, center_y=0.6)


def smoothed_sample(index):
    """Distinct value per channel and tick."""
    return {name: 0.01 * index + channel for channel, name in enumerate(METRIC_CHANNELS)}


class TestCalibrationEngine(unittest.TestCase):
    """Test calibration window, extension and finalization."""

    def setUp(self):
        """Set up test fixtures."""
        self.engine = CalibrationEngine(duration_ms=5000, extension_ms=3000, min_samples=45)

    def test_baseline_is_median_of_buffers(self):
        """Test that each baseline channel is the median of its samples."""
        finalized_at = None
        for tick in range(51):
            if self.engine.update(tick * 100.0, FACE, TORSO, smoothed_sample(tick)):
                finalized_at = tick

        self.assertEqual(finalized_at, 50)
        self.assertTrue(self.engine.complete)
        self.assertFalse(self.engine.extended)
        self.assertEqual(self.engine.sample_count, 51)
        for name in METRIC_CHANNELS:
            self.assertAlmostEqual(getattr(self.engine.baseline, name), median(self.engine.buffers[name]))
        self.assertAlmostEqual(self.engine.baseline.yaw, 0.25)

    def test_extension_when_too_few_samples(self):
        """Test the one-time extension and finalization after it."""
        for tick in range(11):
            self.assertFalse(self.engine.update(tick * 500.0, FACE, TORSO, smoothed_sample(tick)))

        self.assertTrue(self.engine.extended)
        self.assertFalse(self.engine.complete)
        self.assertEqual(self.engine.duration_ms, 8000)

        self.assertFalse(self.engine.update(7900.0, None, None, {}))
        self.assertTrue(self.engine.update(8000.0, None, None, {}))
        self.assertTrue(self.engine.complete)
        self.assertEqual(self.engine.sample_count, 11)

    def test_empty_buffers_use_defaults(self):
        """Test finalization without any good frame."""
        for tick in range(81):
            self.engine.update(tick * 100.0, None, None, smoothed_sample(tick))

        self.assertTrue(self.engine.complete)
        self.assertTrue(self.engine.extended)
        self.assertEqual(self.engine.sample_count, 0)
        self.assertEqual(self.engine.baseline, Baseline())

    def test_custom_defaults(self):
        """Test that configured defaults fill empty channels."""
        defaults = Baseline(torso_scale=0.3)
        engine = CalibrationEngine(duration_ms=100, defaults=defaults)
        engine.update(0.0, None, None, {})
        engine.update(100.0, None, None, {})
        engine.update(3100.0, None, None, {})

        self.assertEqual(engine.baseline, defaults)

    def test_low_visibility_torso_is_not_sampled(self):
        """Test the sample quality gate."""
        hidden = TorsoMetrics(torso_scale=0.25, visibility_score=0.2, center_x=0.5, center_y=0.6)
        self.engine.update(0.0, FACE, hidden, smoothed_sample(0))
        self.engine.update(100.0, None, TORSO, smoothed_sample(1))
        self.engine.update(200.0, FACE, TORSO, smoothed_sample(2))

        self.assertEqual(self.engine.sample_count, 1)

    def test_non_finite_samples_are_skipped(self):
        """Test that a NaN channel value is not buffered."""
        sample = smoothed_sample(0)
        sample["pitch"] = float("nan")
        self.engine.update(0.0, FACE, TORSO, sample)

        self.assertEqual(len(self.engine.buffers["pitch"]), 0)
        self.assertEqual(len(self.engine.buffers["yaw"]), 1)

    def test_buffers_are_bounded(self):
        """Test that the oldest samples are dropped."""
        engine = CalibrationEngine(duration_ms=100000, buffer_limit=10)
        for tick in range(25):
            engine.update(tick * 10.0, FACE, TORSO, smoothed_sample(tick))

        self.assertEqual(engine.sample_count, 10)
        self.assertAlmostEqual(engine.buffers["yaw"][0], 0.15)

    def test_finalize_is_idempotent(self):
        """Test repeated finalization and updates after completion."""
        self.engine.update(0.0, FACE, TORSO, smoothed_sample(0))
        first = self.engine.finalize()
        self.engine.buffers["yaw"].append(9.0)

        self.assertIs(self.engine.finalize(), first)
        self.assertFalse(self.engine.update(99999.0, FACE, TORSO, smoothed_sample(1)))

    def test_snapshot(self):
        """Test progress snapshots."""
        before = self.engine.snapshot(0.0)
        self.assertFalse(before.complete)
        self.assertEqual(before.remaining_ms, 5000)

        self.engine.update(1000.0, FACE, TORSO, smoothed_sample(0))
        snapshot = self.engine.snapshot(3000.0)
        self.assertEqual(snapshot.sample_count, 1)
        self.assertEqual(snapshot.remaining_ms, 3000)
        self.assertEqual(self.engine.snapshot(10000.0).remaining_ms, 0)

    def test_samples_are_copies(self):
        """Test that exposed samples cannot mutate the buffers."""
        self.engine.update(0.0, FACE, TORSO, smoothed_sample(0))
        samples = self.engine.samples
        samples["yaw"].append(1.0)

        self.assertEqual(len(self.engine.buffers["yaw"]), 1)
        self.assertEqual(set(samples), set(asdict(Baseline())))


if __name__ == '__main__':
    unittest.main()
