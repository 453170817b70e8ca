from __future__ import annotations

from fastapi import APIRouter, File, Request, UploadFile

from api.schemas import (
    AnomalyResponse,
    ClassificationResponse,
    PoseDocument,
    QualityResponse,
    ReportResponse,
    SeiResponse,
)
from api.services.analysis import http_error, require_context, sei_payload, to_sequence
from gaitscope.analysis import analyze_sequence
from gaitscope.anomaly.pipeline import detect_gait_anomaly
from gaitscope.classify.cnn import classify_sei
from gaitscope.config import SeiConfig
from gaitscope.quality.failures import GaitScopeError, assess_pose_quality
from gaitscope.sei.generator import generate_sei

router = APIRouter(prefix="/analysis", tags=["analysis"])


@router.post("/quality", response_model=QualityResponse)
async def check_quality(document: PoseDocument) -> QualityResponse:
    """
    Report how much of the clip carries a full, visible landmark set.
    """
    report = assess_pose_quality(to_sequence(document))
    return QualityResponse(**report.to_dict())


@router.post("/sei", response_model=SeiResponse)
async def render_sei(document: PoseDocument, request: Request) -> SeiResponse:
    """
    Render the skeleton energy image; no model is needed.
    """
    context = request.app.state.context
    sei_config = context.sei_config if context is not None else SeiConfig()
    try:
        sei = generate_sei(
            to_sequence(document),
            sei_config,
            normalized_input=document.normalized_input,
        )
    except GaitScopeError as exc:
        raise http_error(exc) from exc
    return sei_payload(sei)


@router.post("/anomaly", response_model=AnomalyResponse)
async def detect_anomaly(document: PoseDocument, request: Request) -> AnomalyResponse:
    context = require_context(request.app.state.context)
    try:
        result = await detect_gait_anomaly(
            to_sequence(document), context.autoencoder, context.anomaly_config
        )
    except GaitScopeError as exc:
        raise http_error(exc) from exc
    return AnomalyResponse(**result.to_dict())


@router.post("/classify", response_model=ClassificationResponse)
async def classify_image(
    request: Request,
    image: UploadFile = File(..., description="SEI image (PNG or JPEG)."),
) -> ClassificationResponse:
    context = require_context(request.app.state.context)
    data = await image.read()
    try:
        result = await classify_sei(data, context.classifier, context.classifier_config)
    except GaitScopeError as exc:
        raise http_error(exc) from exc
    return ClassificationResponse(**result.to_dict())


@router.post("", response_model=ReportResponse)
async def analyze(document: PoseDocument, request: Request) -> ReportResponse:
    """
    Run both pipelines on one pose document and return the combined report.
    """
    context = require_context(request.app.state.context)
    try:
        report = await analyze_sequence(
            to_sequence(document), context, normalized_input=document.normalized_input
        )
    except GaitScopeError as exc:
        raise http_error(exc) from exc
    payload = report.to_dict()
    payload["sei"] = sei_payload(report.sei)
    return ReportResponse(**payload)
