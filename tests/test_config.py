"""
Configuration and logging tests for the focus guard system.
"""

import sys
import os
import json
import logging
import math
import shutil
import tempfile
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from focusguard.core.types import Baseline, MachineConfig, SignalThresholds
from focusguard.utils.config import Config, config, merge_dataclass
from focusguard.utils.logger import get_logger, logger, set_console_level


class TestMergeDataclass(unittest.TestCase):
    """Test flat overrides over dataclass defaults."""

    def test_merges_known_fields(self):
        """Test merging over a frozen dataclass."""
        merged = merge_dataclass(MachineConfig(), {'off_focus_open_ms': 6000, 'min_open_ms': "2500"})

        self.assertEqual(merged.off_focus_open_ms, 6000.0)
        self.assertIsInstance(merged.off_focus_open_ms, float)
        self.assertEqual(merged.min_open_ms, 2500.0)
        self.assertEqual(merged.refocus_close_ms, 3000.0)

    def test_ignores_unknown_and_non_finite(self):
        """Test that bad overrides keep the current values."""
        merged = merge_dataclass(Baseline(), {'yaw': math.nan, 'torso_scale': None, 'roll': 1.0})

        self.assertEqual(merged, Baseline())

    def test_empty_overrides(self):
        thresholds = SignalThresholds()
        self.assertIs(merge_dataclass(thresholds, None), thresholds)
        self.assertIs(merge_dataclass(thresholds, {}), thresholds)


class TestConfig(unittest.TestCase):
    """Test configuration loading, saving and validation."""

    def setUp(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.config = Config()

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def write_json(self, data):
        path = os.path.join(self.temp_dir, "config.json")
        with open(path, 'w') as f:
            if isinstance(data, str):
                f.write(data)
            else:
                json.dump(data, f)
        return path

    def test_defaults(self):
        """Test built-in defaults."""
        self.assertEqual(self.config.calibration.base_duration_ms, 5000)
        self.assertEqual(self.config.calibration.min_samples, 45)
        self.assertFalse(self.config.calibration.personalize_thresholds)
        self.assertEqual(self.config.redirect.open_failure_rollback_ms, 450)
        self.assertEqual(self.config.logging.trace_interval_ms, 1400)
        self.assertEqual(self.config.machine, MachineConfig())
        self.assertTrue(self.config.validate_config())

    def test_load_from_file(self):
        """Test merging a partial JSON document."""
        path = self.write_json({
            'camera': {'fps': 15},
            'calibration': {'personalize_thresholds': True, 'min_samples': 30},
            'machine': {'off_focus_open_ms': 6000},
            'thresholds': {'yaw_away_delta': 0.2, 'unknown': 1},
            'smoothing': {'rates': {'yaw': [0.5, 0.2]}},
            'unknown_section': {'x': 1},
        })

        self.assertTrue(self.config.load_from_file(path))
        self.assertEqual(self.config.camera.fps, 15)
        self.assertEqual(self.config.camera.width, 1280)
        self.assertTrue(self.config.calibration.personalize_thresholds)
        self.assertEqual(self.config.calibration.min_samples, 30)
        self.assertEqual(self.config.machine.off_focus_open_ms, 6000.0)
        self.assertEqual(self.config.machine.reopen_guard_ms, 2000.0)
        self.assertEqual(self.config.thresholds.yaw_away_delta, 0.2)
        self.assertEqual(self.config.smoothing.rates['yaw'], (0.5, 0.2))
        self.assertEqual(self.config.smoothing.rates['pitch'], (0.28, 0.13))

    def test_constructor_loads_file(self):
        path = self.write_json({'redirect': {'url': "https://example.com/"}})
        self.assertEqual(Config(path).redirect.url, "https://example.com/")

    def test_invalid_files_keep_defaults(self):
        """Test that malformed files never raise."""
        self.assertFalse(self.config.load_from_file(os.path.join(self.temp_dir, "missing.json")))
        self.assertFalse(self.config.load_from_file(self.write_json("{not json")))
        self.assertFalse(self.config.load_from_file(self.write_json([1, 2, 3])))
        self.assertEqual(self.config.machine, MachineConfig())

    def test_malformed_rates_keep_defaults(self):
        """Test that rate entries of the wrong shape are skipped."""
        path = self.write_json({'smoothing': {'rates': {'yaw': 0.3, 'pitch': [0.5], 'roll': [0.2, 0.1],
                                                        'eye_x': [0.4, 0.2]}}})

        self.assertTrue(self.config.load_from_file(path))
        self.assertEqual(self.config.smoothing.rates['yaw'], (0.3, 0.13))
        self.assertEqual(self.config.smoothing.rates['pitch'], (0.28, 0.13))
        self.assertEqual(self.config.smoothing.rates['eye_x'], (0.4, 0.2))
        self.assertNotIn('roll', self.config.smoothing.rates)
        self.assertTrue(self.config.validate_config())

    def test_boolean_strings(self):
        """Test that only real booleans or true/false strings toggle flags."""
        path = self.write_json({'calibration': {'personalize_thresholds': "false"},
                                'redirect': {'dry_run': "True"}})
        self.assertTrue(self.config.load_from_file(path))
        self.assertFalse(self.config.calibration.personalize_thresholds)
        self.assertTrue(self.config.redirect.dry_run)

        path = self.write_json({'calibration': {'personalize_thresholds': 1},
                                'logging': {'enable_file_logging': "yes"}})
        self.assertTrue(self.config.load_from_file(path))
        self.assertFalse(self.config.calibration.personalize_thresholds)
        self.assertFalse(self.config.logging.enable_file_logging)

    def test_save_and_reload(self):
        """Test writing the configuration back out."""
        self.config.machine = merge_dataclass(self.config.machine, {'min_open_ms': 5000})
        path = os.path.join(self.temp_dir, "nested", "saved.json")

        self.assertTrue(self.config.save_to_file(path))
        reloaded = Config(path)
        self.assertEqual(reloaded.machine.min_open_ms, 5000.0)
        self.assertEqual(reloaded.smoothing.rates, self.config.smoothing.rates)

    def test_validation_errors(self):
        """Test invalid values."""
        self.config.camera.width = -1
        self.assertFalse(self.config.validate_config())
        self.config.camera.width = 1280

        self.config.smoothing.rates['yaw'] = (0.0, 0.5)
        self.assertFalse(self.config.validate_config())
        self.config.smoothing.rates['yaw'] = (0.3, 0.13)

        self.config.thresholds = SignalThresholds(torso_leave_ratio=0.7)
        self.assertFalse(self.config.validate_config())
        self.config.thresholds = SignalThresholds()

        self.config.machine = MachineConfig(hard_evidence_multiplier=-1.0)
        self.assertFalse(self.config.validate_config())

    def test_global_config(self):
        self.assertIsInstance(config, Config)


class TestLogger(unittest.TestCase):
    """Test logger functionality."""

    def setUp(self):
        """Set up test environment."""
        self.previous_level = config.logging.console_level

    def tearDown(self):
        set_console_level(self.previous_level)

    def test_no_duplicate_handlers(self):
        """Test that repeated lookups share handlers."""
        first = get_logger("focusguard.tests")
        second = get_logger("focusguard.tests")

        self.assertIs(first.logger, second.logger)
        self.assertEqual(len(second.logger.handlers), 1)
        self.assertFalse(second.logger.propagate)

    def test_set_console_level(self):
        """Test changing the console level at runtime."""
        module_logger = get_logger("focusguard.tests.level")
        set_console_level("DEBUG")

        self.assertEqual(module_logger.logger.handlers[0].level, logging.DEBUG)
        self.assertEqual(config.logging.console_level, "DEBUG")

        later = get_logger("focusguard.tests.later")
        self.assertEqual(later.logger.handlers[0].level, logging.DEBUG)

    def test_domain_helpers(self):
        """Test that domain helpers accept their payloads."""
        logger.log_calibration_extended(3000, 12)
        logger.log_calibration_complete(60, Baseline(), False)
        logger.log_redirect_action("open_redirect", {'opened': True, 'pid': 1, 'browser': "chrome"}, "look_away")
        logger.log_state_trace({'phase': "focused"})
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            logger.log_error_with_context(e, "test")
        logger.log_system_info()


if __name__ == '__main__':
    unittest.main()
