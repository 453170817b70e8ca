"""SEI classification with the external gait-class CNN."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from gaitscope.config import ClassifierConfig
from gaitscope.io.images import decode_image, resize_bilinear
from gaitscope.models.session import ModelSession, scoped_tensors
from gaitscope.quality.failures import InferenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassScore:
    label: str
    score: float


@dataclass(frozen=True)
class ClassificationResult:
    """Argmax class plus every class score, sorted by descending score."""

    predicted_class: str
    confidence: float
    all_scores: Tuple[ClassScore, ...]

    def to_dict(self) -> dict:
        return {
            "predictedClass": self.predicted_class,
            "confidence": self.confidence,
            "allScores": [{"label": s.label, "score": s.score} for s in self.all_scores],
        }


def preprocess_image(data: bytes, input_size: int = 224) -> np.ndarray:
    """Decode, resize bilinearly and scale to [0, 1] as a ``(1, S, S, 3)`` batch."""
    rgb = decode_image(data)
    resized = resize_bilinear(rgb, input_size).astype(np.float32) / 255.0
    return resized[np.newaxis, ...]


def rank_scores(probabilities: np.ndarray, labels: Tuple[str, ...]) -> ClassificationResult:
    """Pair probabilities with labels; the first maximum wins ties."""
    probs = np.asarray(probabilities, dtype=float).reshape(-1)
    if probs.size != len(labels):
        raise InferenceError(
            f"classifier returned {probs.size} scores for {len(labels)} labels"
        )
    best = int(np.argmax(probs))
    scores = sorted(
        (ClassScore(label, float(p)) for label, p in zip(labels, probs)),
        key=lambda s: s.score,
        reverse=True,
    )
    return ClassificationResult(
        predicted_class=labels[best],
        confidence=float(probs[best]),
        all_scores=tuple(scores),
    )


async def classify_sei(
    image: bytes,
    session: ModelSession,
    config: ClassifierConfig = ClassifierConfig(),
) -> ClassificationResult:
    """Classify an encoded SEI (PNG or the host's JPEG re-encode)."""
    session.require_ready()
    started = time.perf_counter()
    with scoped_tensors() as scope:
        batch = scope.track(preprocess_image(image, config.input_size))
        probabilities = await session.predict(batch, scope)
        result = rank_scores(probabilities, config.labels)
    logger.info(
        "classified SEI as %s (%.2f%%) in %.0f ms",
        result.predicted_class,
        result.confidence * 100,
        (time.perf_counter() - started) * 1000,
    )
    return result
