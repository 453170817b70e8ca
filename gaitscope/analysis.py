"""End-to-end analysis of one pose sequence.

Both sub-pipelines consume the same :class:`PoseSequence`: the autoencoder
chain yields an :class:`AnomalyResult`, the SEI chain yields an image and its
classification. Nothing here persists; storing the report is the caller's job.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

from gaitscope.anomaly.classifier import AnomalyResult
from gaitscope.anomaly.pipeline import detect_gait_anomaly
from gaitscope.classify.cnn import ClassificationResult, classify_sei
from gaitscope.io.images import reencode_jpeg
from gaitscope.io.pose_document import PoseSequence
from gaitscope.models.session import AnalysisContext
from gaitscope.quality.failures import PoseQualityReport, assess_pose_quality
from gaitscope.sei.generator import SeiImage, generate_sei

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GaitReport:
    quality: PoseQualityReport
    anomaly: AnomalyResult
    sei: SeiImage
    classification: ClassificationResult

    @property
    def classification_label(self) -> str:
        return "Abnormal" if self.anomaly.is_abnormal else "Normal"

    def to_dict(self, include_image: bool = False) -> dict:
        payload = {
            "quality": self.quality.to_dict(),
            "anomaly": self.anomaly.to_dict(),
            "classification": self.classification.to_dict(),
            "sei": {"size": self.sei.size, "framesUsed": self.sei.frames_used},
        }
        if include_image:
            payload["sei"]["pngBase64"] = base64.b64encode(self.sei.png).decode("ascii")
        return payload


async def analyze_sequence(
    sequence: PoseSequence,
    context: AnalysisContext,
    normalized_input: bool = True,
) -> GaitReport:
    """Run quality gate, anomaly detection, SEI generation and classification.

    The quality gate is advisory and only logged; typed failures from the
    pipelines propagate unchanged.
    """

    quality = assess_pose_quality(sequence)
    if not quality.valid:
        logger.warning("pose quality check failed: %s", quality.message)

    anomaly = await detect_gait_anomaly(sequence, context.autoencoder, context.anomaly_config)
    sei = generate_sei(sequence, context.sei_config, normalized_input=normalized_input)
    classification = await classify_sei(
        reencode_jpeg(sei.png), context.classifier, context.classifier_config
    )
    return GaitReport(quality=quality, anomaly=anomaly, sei=sei, classification=classification)
