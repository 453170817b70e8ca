"""
Service helpers bridging HTTP payloads and the analysis pipelines.
"""

from __future__ import annotations

import base64
import logging
import os
from typing import Optional

from fastapi import HTTPException

from api.schemas import PoseDocument, SeiResponse
from gaitscope.io.pose_document import PoseSequence
from gaitscope.models.session import AnalysisContext, load_model_factory
from gaitscope.quality.failures import (
    DegenerateFrameError,
    GaitScopeError,
    InferenceError,
    InputError,
    ModelNotReadyError,
)
from gaitscope.sei.generator import SeiImage

logger = logging.getLogger(__name__)

MODEL_FACTORY_ENV = "GAITSCOPE_MODEL_FACTORY"


def context_from_env() -> Optional[AnalysisContext]:
    """
    Build an AnalysisContext from $GAITSCOPE_MODEL_FACTORY, or None when unset.
    """
    target = os.getenv(MODEL_FACTORY_ENV)
    if not target:
        return None
    reconstruct_loader, classify_loader = load_model_factory(target)
    return AnalysisContext.from_loaders(reconstruct_loader, classify_loader)


def to_sequence(document: PoseDocument) -> PoseSequence:
    return PoseSequence.from_dict(document.model_dump(exclude={"normalized_input"}))


def sei_payload(sei: SeiImage) -> SeiResponse:
    return SeiResponse(
        width=sei.size,
        height=sei.size,
        framesUsed=sei.frames_used,
        pngBase64=base64.b64encode(sei.png).decode("ascii"),
    )


def require_context(context: Optional[AnalysisContext]) -> AnalysisContext:
    if context is None:
        raise HTTPException(
            status_code=503,
            detail=f"No models configured; set {MODEL_FACTORY_ENV}.",
        )
    return context


def http_error(exc: GaitScopeError) -> HTTPException:
    """
    Translate a pipeline failure into the status the host UI expects.
    """
    if isinstance(exc, ModelNotReadyError):
        return HTTPException(status_code=503, detail=f"Models are still initializing: {exc}")
    if isinstance(exc, (InputError, DegenerateFrameError)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, InferenceError):
        logger.error("inference failed: %s", exc)
        return HTTPException(status_code=500, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
