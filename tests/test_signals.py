import json
import math
import tempfile
import unittest
from pathlib import Path

import numpy as np

from gaitscope.config import (
    NUM_FEATURES,
    Joint,
    NanFillPolicy,
    NormalizationPolicy,
    NormalizationStats,
)
from gaitscope.io.pose_document import PoseFrame, PoseLandmark
from gaitscope.quality.failures import InputError
from gaitscope.signals.cleaning import clean_features, interpolate_nan, moving_average
from gaitscope.signals.features import extract_features, frame_features
from gaitscope.signals.standardize import normalize_features, per_sequence_stats
from gaitscope.signals.windows import create_windows, window_stride

from gait_fixtures import STANDING_POSE, make_frame, make_sequence


class FeatureExtractionTests(unittest.TestCase):
    def test_channels_follow_gait_joint_order(self) -> None:
        features = frame_features(make_frame())
        self.assertEqual(features.shape, (NUM_FEATURES,))
        self.assertEqual(tuple(features[0:2]), STANDING_POSE[Joint.LEFT_HIP])
        self.assertEqual(tuple(features[6:8]), STANDING_POSE[Joint.RIGHT_KNEE])
        self.assertEqual(tuple(features[14:16]), STANDING_POSE[Joint.RIGHT_FOOT_INDEX])

    def test_short_frame_is_all_nan(self) -> None:
        frame = PoseFrame(landmarks=(PoseLandmark(x=0.1, y=0.2),) * 10)
        self.assertTrue(np.isnan(frame_features(frame)).all())

    def test_missing_slot_only_blanks_its_joint(self) -> None:
        landmarks = list(make_frame().landmarks)
        landmarks[Joint.LEFT_ANKLE] = None
        features = frame_features(PoseFrame(landmarks=tuple(landmarks)))
        self.assertTrue(np.isnan(features[8:10]).all())
        self.assertFalse(np.isnan(np.delete(features, [8, 9])).any())

    def test_empty_sequence_raises(self) -> None:
        sequence = make_sequence(0)
        with self.assertRaises(InputError):
            extract_features(sequence)

    def test_matrix_has_one_row_per_frame(self) -> None:
        self.assertEqual(extract_features(make_sequence(12)).shape, (12, NUM_FEATURES))


class CleaningTests(unittest.TestCase):
    def test_interior_gap_is_linear(self) -> None:
        filled = interpolate_nan(np.array([0.0, math.nan, math.nan, 3.0]))
        np.testing.assert_allclose(filled, [0.0, 1.0, 2.0, 3.0])

    def test_edge_gaps_copy_nearest_value(self) -> None:
        filled = interpolate_nan(np.array([math.nan, 2.0, 4.0, math.nan, math.nan]))
        np.testing.assert_allclose(filled, [2.0, 2.0, 4.0, 4.0, 4.0])

    def test_all_nan_channel_follows_policy(self) -> None:
        channel = np.full(4, math.nan)
        self.assertTrue(np.isnan(interpolate_nan(channel, NanFillPolicy.PROPAGATE)).all())
        np.testing.assert_array_equal(interpolate_nan(channel, NanFillPolicy.ZEROS), np.zeros(4))

    def test_moving_average_shrinks_at_edges(self) -> None:
        smoothed = moving_average(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), window=5)
        np.testing.assert_allclose(smoothed, [2.0, 2.5, 3.0, 3.5, 4.0])

    def test_short_signal_is_unchanged(self) -> None:
        values = np.array([1.0, 9.0, 4.0])
        np.testing.assert_array_equal(moving_average(values, window=5), values)

    def test_constant_channels_survive_cleaning(self) -> None:
        features = np.tile(np.arange(NUM_FEATURES, dtype=float), (20, 1))
        features[5, 3] = math.nan
        cleaned = clean_features(features)
        np.testing.assert_allclose(cleaned, np.tile(np.arange(NUM_FEATURES, dtype=float), (20, 1)))


class StandardizeTests(unittest.TestCase):
    def test_per_sequence_z_score(self) -> None:
        rng = np.random.default_rng(7)
        features = rng.normal(3.0, 2.0, size=(200, NUM_FEATURES))
        normalized = normalize_features(features)
        np.testing.assert_allclose(normalized.mean(axis=0), 0.0, atol=1e-9)
        np.testing.assert_allclose(normalized.std(axis=0), 1.0, atol=1e-9)

    def test_constant_channel_becomes_zero(self) -> None:
        features = np.full((30, NUM_FEATURES), 0.5)
        _, std = per_sequence_stats(features)
        np.testing.assert_array_equal(std, np.ones(NUM_FEATURES))
        np.testing.assert_array_equal(normalize_features(features), np.zeros((30, NUM_FEATURES)))

    def test_global_policy_uses_training_stats(self) -> None:
        stats = NormalizationStats(mean=(1.0,) * NUM_FEATURES, std=(2.0,) * NUM_FEATURES)
        features = np.full((3, NUM_FEATURES), 5.0)
        normalized = normalize_features(features, NormalizationPolicy.GLOBAL, stats)
        np.testing.assert_array_equal(normalized, np.full((3, NUM_FEATURES), 2.0))

    def test_stats_load_from_json_and_sanitize_std(self) -> None:
        path = Path(tempfile.mkdtemp()) / "stats.json"
        std = [0.0] + [2.0] * (NUM_FEATURES - 1)
        path.write_text(json.dumps({"mean": [0.5] * NUM_FEATURES, "std": std}), encoding="utf-8")
        stats = NormalizationStats.from_json(path)
        self.assertEqual(stats.std[0], 1.0)
        self.assertEqual(stats.mean[3], 0.5)

    def test_stats_with_wrong_length_raise(self) -> None:
        with self.assertRaises(ValueError):
            NormalizationStats(mean=(0.0,) * 3, std=(1.0,) * 3)

    def test_global_policy_without_stats_raises(self) -> None:
        with self.assertRaises(ValueError):
            normalize_features(np.zeros((3, NUM_FEATURES)), NormalizationPolicy.GLOBAL)


class WindowTests(unittest.TestCase):
    def test_default_stride_is_half_window(self) -> None:
        self.assertEqual(window_stride(60, 0.5), 30)

    def test_window_count(self) -> None:
        for frames in (60, 89, 90, 119, 120, 301):
            windows = create_windows(np.zeros((frames, NUM_FEATURES)))
            self.assertEqual(windows.shape, ((frames - 60) // 30 + 1, 60, NUM_FEATURES))

    def test_windows_start_on_stride(self) -> None:
        features = np.repeat(np.arange(90, dtype=float)[:, None], NUM_FEATURES, axis=1)
        windows = create_windows(features)
        self.assertEqual(windows[0, 0, 0], 0.0)
        self.assertEqual(windows[1, 0, 0], 30.0)
        self.assertEqual(windows[1, -1, 0], 89.0)

    def test_too_short_sequence_names_both_lengths(self) -> None:
        with self.assertRaises(InputError) as ctx:
            create_windows(np.zeros((59, NUM_FEATURES)))
        message = str(ctx.exception)
        self.assertIn("60", message)
        self.assertIn("59", message)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
