import json
import math
import unittest

import numpy as np

from gaitscope.anomaly.classifier import classify_errors, joint_errors, threshold_confidence
from gaitscope.anomaly.pipeline import detect_gait_anomaly, prepare_windows
from gaitscope.anomaly.scoring import ReconstructionErrors, reconstruction_errors
from gaitscope.config import (
    DEFAULT_JOINT_THRESHOLDS,
    GAIT_JOINTS,
    NUM_FEATURES,
    AnomalyConfig,
    Joint,
    NanFillPolicy,
    NormalizationPolicy,
)
from gaitscope.models.session import ModelSession
from gaitscope.quality.failures import InferenceError, InputError, ModelNotReadyError

from gait_fixtures import (
    identity_autoencoder,
    make_sequence,
    swaying_right_ankle,
    without_joint,
    zero_autoencoder,
)


def errors_for(joint_values: dict) -> ReconstructionErrors:
    """Channel errors where each joint's x and y both carry the given value."""
    feature_errors = np.zeros(NUM_FEATURES)
    for i, joint in enumerate(GAIT_JOINTS):
        feature_errors[2 * i] = feature_errors[2 * i + 1] = joint_values.get(joint, 0.0)
    return ReconstructionErrors(window_errors=np.array([0.1, 0.3]), feature_errors=feature_errors)


class ReconstructionErrorTests(unittest.TestCase):
    def test_errors_reduce_along_expected_axes(self) -> None:
        windows = np.zeros((2, 3, NUM_FEATURES))
        recon = np.zeros_like(windows)
        recon[1, :, 0] = 2.0
        errors = reconstruction_errors(windows, recon)
        self.assertEqual(errors.num_windows, 2)
        np.testing.assert_allclose(errors.window_errors, [0.0, 4.0 / NUM_FEATURES])
        self.assertAlmostEqual(errors.feature_errors[0], 2.0)
        self.assertEqual(errors.feature_errors[1], 0.0)
        self.assertAlmostEqual(errors.max_error, 4.0 / NUM_FEATURES)

    def test_shape_mismatch_raises(self) -> None:
        with self.assertRaises(InferenceError):
            reconstruction_errors(np.zeros((1, 60, NUM_FEATURES)), np.zeros((1, 60, 8)))

    def test_joint_axis_pairs_follow_channel_order(self) -> None:
        errors = ReconstructionErrors(
            window_errors=np.zeros(1), feature_errors=np.arange(NUM_FEATURES, dtype=float)
        )
        pairs = errors.joint_axis_errors()
        self.assertEqual(pairs[Joint.LEFT_HIP], (0.0, 1.0))
        self.assertEqual(pairs[Joint.RIGHT_FOOT_INDEX], (14.0, 15.0))


class JointClassificationTests(unittest.TestCase):
    def test_error_equal_to_threshold_is_abnormal(self) -> None:
        threshold = DEFAULT_JOINT_THRESHOLDS[Joint.LEFT_KNEE]
        result = classify_errors(errors_for({Joint.LEFT_KNEE: threshold}), AnomalyConfig())
        self.assertTrue(result.is_abnormal)
        self.assertEqual(result.worst_joint, Joint.LEFT_KNEE)
        self.assertEqual(result.abnormal_joint_count, 1)
        self.assertEqual(result.confidence, 50.0)

    def test_hips_do_not_vote(self) -> None:
        result = classify_errors(
            errors_for({Joint.LEFT_HIP: 5.0, Joint.RIGHT_HIP: 5.0}), AnomalyConfig()
        )
        self.assertFalse(result.is_abnormal)
        self.assertEqual(result.abnormal_joint_count, 0)
        self.assertNotIn(result.worst_joint, (Joint.LEFT_HIP, Joint.RIGHT_HIP))
        # Hips are still reported, flagged against their own thresholds.
        self.assertEqual(result.joint_errors[0].joint, Joint.LEFT_HIP)
        self.assertTrue(result.joint_errors[0].is_abnormal)

    def test_joint_errors_are_sorted_descending(self) -> None:
        result = classify_errors(
            errors_for({Joint.LEFT_ANKLE: 0.2, Joint.RIGHT_KNEE: 0.4, Joint.LEFT_FOOT_INDEX: 0.1}),
            AnomalyConfig(),
        )
        values = [je.error for je in result.joint_errors]
        self.assertEqual(values, sorted(values, reverse=True))
        self.assertEqual(result.worst_joint, Joint.RIGHT_KNEE)
        self.assertAlmostEqual(result.worst_joint_error, 0.4)

    def test_joint_error_averages_axes(self) -> None:
        feature_errors = np.zeros(NUM_FEATURES)
        feature_errors[4], feature_errors[5] = 0.2, 0.6
        errors = ReconstructionErrors(window_errors=np.zeros(1), feature_errors=feature_errors)
        knee = next(je for je in joint_errors(errors, AnomalyConfig()) if je.joint is Joint.LEFT_KNEE)
        self.assertAlmostEqual(knee.error, 0.4)
        self.assertEqual((knee.x_error, knee.y_error), (0.2, 0.6))

    def test_confidence_grows_with_distance_from_threshold(self) -> None:
        threshold = 0.5
        above = [threshold_confidence(threshold * (1 + k / 10), threshold) for k in range(12)]
        self.assertEqual(above, sorted(above))
        self.assertEqual(above[0], 50.0)
        self.assertEqual(above[-1], 100.0)
        below = [threshold_confidence(threshold * (1 - k / 10), threshold) for k in range(11)]
        self.assertEqual(below, sorted(below))
        for value in above + below:
            self.assertTrue(50.0 <= value <= 100.0)

    def test_nan_joints_do_not_vote(self) -> None:
        result = classify_errors(
            errors_for({Joint.LEFT_ANKLE: math.nan, Joint.RIGHT_ANKLE: 0.1}), AnomalyConfig()
        )
        self.assertFalse(result.is_abnormal)
        self.assertEqual(result.worst_joint, Joint.RIGHT_ANKLE)
        self.assertEqual(result.joint_errors[-1].joint, Joint.LEFT_ANKLE)

    def test_all_nan_voters_raise(self) -> None:
        values = {joint: math.nan for joint in GAIT_JOINTS}
        with self.assertRaises(InputError):
            classify_errors(errors_for(values), AnomalyConfig())

    def test_result_dict_names_joints(self) -> None:
        payload = classify_errors(errors_for({}), AnomalyConfig()).to_dict()
        self.assertEqual(len(payload["jointErrors"]), 8)
        self.assertIn(payload["worstJoint"], {j.name for j in GAIT_JOINTS})
        self.assertAlmostEqual(payload["globalThreshold"], 0.1768068329674364)


class AnomalyConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        config = AnomalyConfig()
        self.assertEqual(config.stride, 30)
        self.assertEqual(config.threshold_for(Joint.RIGHT_ANKLE), 0.6394362561662352)

    def test_global_policy_requires_stats(self) -> None:
        with self.assertRaises(ValueError):
            AnomalyConfig(normalization=NormalizationPolicy.GLOBAL)

    def test_invalid_overlap_raises(self) -> None:
        with self.assertRaises(ValueError):
            AnomalyConfig(overlap=1.0)

    def test_non_positive_threshold_raises(self) -> None:
        for bad in (0.0, -0.2, math.nan):
            thresholds = dict(DEFAULT_JOINT_THRESHOLDS)
            thresholds[Joint.LEFT_KNEE] = bad
            with self.assertRaises(ValueError):
                AnomalyConfig(joint_thresholds=thresholds)


class DetectGaitAnomalyTests(unittest.IsolatedAsyncioTestCase):
    async def test_swaying_right_ankle_is_flagged(self) -> None:
        sequence = make_sequence(90, swaying_right_ankle())
        session = ModelSession("autoencoder", lambda: zero_autoencoder)
        await session.load()

        result = await detect_gait_anomaly(sequence, session)

        self.assertEqual(result.num_windows, 2)
        self.assertTrue(result.is_abnormal)
        self.assertEqual(result.worst_joint, Joint.RIGHT_ANKLE)
        self.assertGreater(result.worst_joint_error, DEFAULT_JOINT_THRESHOLDS[Joint.RIGHT_ANKLE])
        self.assertEqual(result.abnormal_joint_count, 1)
        self.assertGreater(result.confidence, 50.0)
        hips = [je for je in result.joint_errors if je.joint in (Joint.LEFT_HIP, Joint.RIGHT_HIP)]
        self.assertTrue(all(not je.is_abnormal for je in hips))

    async def test_perfect_reconstruction_is_normal(self) -> None:
        session = ModelSession("autoencoder", lambda: identity_autoencoder)
        await session.load()
        result = await detect_gait_anomaly(make_sequence(90, swaying_right_ankle()), session)
        self.assertFalse(result.is_abnormal)
        self.assertEqual(result.mean_error, 0.0)
        self.assertEqual(result.confidence, 100.0)

    async def test_never_detected_joint_keeps_aggregates_finite(self) -> None:
        sequence = without_joint(make_sequence(90, swaying_right_ankle()), Joint.LEFT_FOOT_INDEX)
        session = ModelSession("autoencoder", lambda: zero_autoencoder)
        await session.load()

        result = await detect_gait_anomaly(sequence, session)

        self.assertTrue(math.isfinite(result.mean_error))
        self.assertTrue(math.isfinite(result.max_error))
        self.assertEqual(result.worst_joint, Joint.RIGHT_ANKLE)
        self.assertTrue(result.is_abnormal)
        foot = next(je for je in result.joint_errors if je.joint is Joint.LEFT_FOOT_INDEX)
        self.assertTrue(math.isnan(foot.error))
        self.assertFalse(foot.is_abnormal)

        payload = json.loads(json.dumps(result.to_dict(), allow_nan=False))
        entry = next(je for je in payload["jointErrors"] if je["joint"] == "LEFT_FOOT_INDEX")
        self.assertIsNone(entry["error"])

    async def test_zero_fill_policy_scores_missing_joint_as_constant(self) -> None:
        sequence = without_joint(make_sequence(90, swaying_right_ankle()), Joint.LEFT_FOOT_INDEX)
        session = ModelSession("autoencoder", lambda: zero_autoencoder)
        await session.load()

        result = await detect_gait_anomaly(
            sequence, session, AnomalyConfig(nan_fill=NanFillPolicy.ZEROS)
        )

        self.assertTrue(all(math.isfinite(je.error) for je in result.joint_errors))
        foot = next(je for je in result.joint_errors if je.joint is Joint.LEFT_FOOT_INDEX)
        self.assertEqual(foot.error, 0.0)
        self.assertEqual(result.worst_joint, Joint.RIGHT_ANKLE)

    async def test_short_sequence_is_rejected(self) -> None:
        session = ModelSession("autoencoder", lambda: zero_autoencoder)
        await session.load()
        with self.assertRaises(InputError) as ctx:
            await detect_gait_anomaly(make_sequence(59), session)
        self.assertEqual(str(ctx.exception), "Video too short. Need at least 60 frames, got 59")

    async def test_unloaded_session_fails_fast(self) -> None:
        session = ModelSession("autoencoder", lambda: zero_autoencoder)
        with self.assertRaises(ModelNotReadyError):
            await detect_gait_anomaly(make_sequence(90), session)

    async def test_model_with_wrong_output_shape(self) -> None:
        session = ModelSession("autoencoder", lambda: (lambda batch: batch[:, :, :8]))
        await session.load()
        with self.assertRaises(InferenceError):
            await detect_gait_anomaly(make_sequence(90), session)


class PrepareWindowsTests(unittest.TestCase):
    def test_window_batch_shape(self) -> None:
        windows = prepare_windows(make_sequence(120, swaying_right_ankle()), AnomalyConfig())
        self.assertEqual(windows.shape, (3, 60, NUM_FEATURES))
        self.assertFalse(np.isnan(windows).any())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
