import math
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class LandmarkModel(BaseModel):
    x: float
    y: float
    z: Optional[float] = None
    visibility: Optional[float] = Field(None, description="Detection confidence in [0, 1].")


class FrameModel(BaseModel):
    landmarks: List[Optional[LandmarkModel]] = Field(
        default_factory=list, description="Up to 33 landmark slots; null marks an absent slot."
    )

    @field_validator("landmarks")
    @classmethod
    def at_most_33(cls, v: List[Optional[LandmarkModel]]) -> List[Optional[LandmarkModel]]:
        if len(v) > 33:
            raise ValueError("a frame carries at most 33 landmarks")
        return v


class MetadataModel(BaseModel):
    width: Optional[float] = None
    height: Optional[float] = None
    frame_count: Optional[int] = None
    fps: Optional[float] = None

    @field_validator("width", "height", "fps")
    @classmethod
    def positive_if_present(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and (math.isnan(v) or v <= 0):
            raise ValueError("must be a positive number if provided")
        return v


class PoseDocument(BaseModel):
    """
    Pose-sequence document as produced by the landmark extractor.
    """
    metadata: MetadataModel = Field(default_factory=MetadataModel)
    frames: List[FrameModel] = Field(..., description="Time-ordered frames.")
    normalized_input: bool = Field(
        True, description="Landmarks are [0,1] fractions of the frame (False: pixels)."
    )


class QualityResponse(BaseModel):
    valid: bool
    validFrameCount: int
    totalFrameCount: int
    qualityPercentage: float
    message: Optional[str] = None


class JointErrorModel(BaseModel):
    joint: str
    error: Optional[float] = Field(None, description="Null when the joint was never detected.")
    threshold: float
    isAbnormal: bool
    xError: Optional[float] = None
    yError: Optional[float] = None


class AnomalyResponse(BaseModel):
    isAbnormal: bool
    meanError: float
    maxError: float
    numWindows: int
    confidence: float
    jointErrors: List[JointErrorModel]
    worstJoint: str
    worstJointError: float
    abnormalJointCount: int
    globalThreshold: float


class ClassScoreModel(BaseModel):
    label: str
    score: float


class ClassificationResponse(BaseModel):
    predictedClass: str
    confidence: float
    allScores: List[ClassScoreModel]


class SeiResponse(BaseModel):
    width: int
    height: int
    framesUsed: int
    pngBase64: str = Field(..., description="Lossless greyscale PNG, base64-encoded.")


class ReportResponse(BaseModel):
    quality: QualityResponse
    anomaly: AnomalyResponse
    classification: ClassificationResponse
    sei: SeiResponse
