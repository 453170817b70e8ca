import base64
import unittest

import cv2
import numpy as np
from fastapi.testclient import TestClient

from api.app import create_app
from gaitscope.models.session import AnalysisContext
from gaitscope.sei.png import encode_greyscale_png

from gaitscope.config import Joint

from gait_fixtures import (
    fixed_classifier,
    make_sequence,
    swaying_right_ankle,
    without_joint,
    zero_autoencoder,
)


def pose_payload(num_frames: int = 90, **kwargs) -> dict:
    return make_sequence(num_frames, swaying_right_ankle(), **kwargs).to_dict()


class AnalysisApiTests(unittest.TestCase):
    def setUp(self) -> None:
        context = AnalysisContext.from_loaders(lambda: zero_autoencoder, lambda: fixed_classifier)
        self.client_cm = TestClient(create_app(context))
        self.client = self.client_cm.__enter__()

    def tearDown(self) -> None:
        self.client_cm.__exit__(None, None, None)

    def test_health_reports_ready_sessions(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.json(), {"autoencoder": "ready", "classifier": "ready"})

    def test_quality(self) -> None:
        response = self.client.post("/analysis/quality", json=pose_payload(30))
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["valid"])

    def test_sei_returns_png(self) -> None:
        response = self.client.post("/analysis/sei", json=pose_payload(20))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        png = base64.b64decode(body["pngBase64"])
        image = cv2.imdecode(np.frombuffer(png, np.uint8), cv2.IMREAD_UNCHANGED)
        self.assertEqual(image.shape, (body["height"], body["width"]))
        self.assertEqual(body["framesUsed"], 20)

    def test_sei_accepts_pixel_coordinates(self) -> None:
        payload = pose_payload(10, pixel_coords=True)
        payload["normalized_input"] = False
        response = self.client.post("/analysis/sei", json=payload)
        self.assertEqual(response.status_code, 200)

    def test_anomaly(self) -> None:
        response = self.client.post("/analysis/anomaly", json=pose_payload())
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["isAbnormal"])
        self.assertEqual(body["worstJoint"], "RIGHT_ANKLE")
        self.assertEqual(body["numWindows"], 2)

    def test_never_detected_joint_reports_null_error(self) -> None:
        sequence = without_joint(make_sequence(90, swaying_right_ankle()), Joint.LEFT_FOOT_INDEX)
        response = self.client.post("/analysis/anomaly", json=sequence.to_dict())
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertIsInstance(body["meanError"], float)
        self.assertIsInstance(body["maxError"], float)
        foot = next(je for je in body["jointErrors"] if je["joint"] == "LEFT_FOOT_INDEX")
        self.assertIsNone(foot["error"])
        self.assertEqual(body["worstJoint"], "RIGHT_ANKLE")

    def test_short_clip_is_unprocessable(self) -> None:
        response = self.client.post("/analysis/anomaly", json=pose_payload(40))
        self.assertEqual(response.status_code, 422)
        self.assertIn("Video too short", response.json()["detail"])

    def test_empty_sei_is_unprocessable(self) -> None:
        response = self.client.post("/analysis/sei", json={"frames": []})
        self.assertEqual(response.status_code, 422)

    def test_classify_upload(self) -> None:
        png = encode_greyscale_png(np.full((32, 32), 200, dtype=np.uint8))
        response = self.client.post(
            "/analysis/classify", files={"image": ("sei.png", png, "image/png")}
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["predictedClass"], "NORMAL")

    def test_full_report(self) -> None:
        response = self.client.post("/analysis", json=pose_payload())
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["anomaly"]["worstJoint"], "RIGHT_ANKLE")
        self.assertEqual(body["classification"]["predictedClass"], "NORMAL")
        self.assertTrue(body["quality"]["valid"])
        self.assertTrue(body["sei"]["pngBase64"])

    def test_oversized_frame_is_rejected(self) -> None:
        payload = {"frames": [{"landmarks": [{"x": 0.1, "y": 0.1}] * 34}]}
        response = self.client.post("/analysis/quality", json=payload)
        self.assertEqual(response.status_code, 422)


class ModelAvailabilityTests(unittest.TestCase):
    def test_failed_models_answer_503(self) -> None:
        def broken_loader():
            raise OSError("weights missing")

        context = AnalysisContext.from_loaders(broken_loader, broken_loader)
        with TestClient(create_app(context)) as client:
            self.assertEqual(client.get("/health").json()["autoencoder"], "failed")
            response = client.post("/analysis/anomaly", json=pose_payload())
            self.assertEqual(response.status_code, 503)
            # SEI rendering needs no model.
            self.assertEqual(client.post("/analysis/sei", json=pose_payload(5)).status_code, 200)

    def test_unconfigured_models_answer_503(self) -> None:
        with TestClient(create_app()) as client:
            self.assertEqual(client.get("/health").json()["classifier"], "unconfigured")
            response = client.post("/analysis", json=pose_payload())
            self.assertEqual(response.status_code, 503)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
