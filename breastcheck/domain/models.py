from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


YesNo = Literal["Yes", "No"]
Hardness = Literal["soft", "medium", "hard"]
PainSeverity = Literal["none", "mild", "moderate", "severe"]
Position = Literal["top", "bottom", "nipple_area"]
Duration = Literal[
    "1-3 days",
    "4-7 days",
    "1-2 weeks",
    "3-4 weeks",
    "1-3 months",
    "3-6 months",
    "6-12 months",
    "over 1 year",
]
RiskLevel = Literal["Low", "Medium", "High"]
AnalysisMethod = Literal["vision-enhanced", "text-based"]


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True)


class PatientInfo(CamelModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=2)
    age: int = Field(..., ge=1, le=120)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str):
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Name must be at least 2 characters long")
        return v


class SymptomSet(CamelModel):
    hardness: Optional[Hardness] = None
    pain_severity: Optional[PainSeverity] = None
    position: Optional[Position] = None
    duration: Optional[Duration] = None
    feel_lump: Optional[YesNo] = None
    lump_painful: Optional[YesNo] = None
    lump_stiff: Optional[YesNo] = None
    symptoms: str = ""

    @field_validator(
        "hardness", "pain_severity", "position", "duration",
        "feel_lump", "lump_painful", "lump_stiff",
        mode="before",
    )
    @classmethod
    def empty_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("symptoms", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class MedicalImageRef(CamelModel):
    name: str
    size: int = Field(..., ge=0)
    mime_type: str
    inline_data: Optional[str] = None

    @property
    def data_url(self) -> Optional[str]:
        if not self.inline_data:
            return None
        return f"data:{self.mime_type};base64,{self.inline_data}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class DiagnosisRequest(CamelModel):
    patient: PatientInfo
    symptoms: SymptomSet
    medical_image: Optional[MedicalImageRef] = None
    timestamp: str = Field(default_factory=utc_timestamp)


class DetailedAnalysis(CamelModel):
    model_config = ConfigDict(extra="allow")

    symptom_evaluation: Optional[str] = None
    risk_factors: List[str] = []
    differential_diagnosis: List[str] = []
    clinical_correlations: Optional[str] = None


class FollowUpProtocol(CamelModel):
    model_config = ConfigDict(extra="allow")

    urgency: Optional[str] = None
    warning_signs: List[str] = []
    monitoring: Optional[str] = None


class ResultMetadata(CamelModel):
    model_config = ConfigDict(extra="allow")

    analysis_date: Optional[str] = None
    patient_age: Optional[int] = None
    symptoms: Optional[Union[Dict[str, Any], str]] = None
    medical_image_provided: bool = False
    prompt_version: Optional[str] = None


class DiagnosisResult(CamelModel):
    model_config = ConfigDict(extra="allow")

    diagnosis: str
    confidence: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    risk_score: Optional[int] = Field(None, ge=0, le=100)
    recommendations: List[str]
    explanation: Optional[str] = None
    detailed_analysis: Optional[DetailedAnalysis] = None
    follow_up_protocol: Optional[FollowUpProtocol] = None
    metadata: Optional[ResultMetadata] = None
    image_analyzed: bool = False
    analysis_method: AnalysisMethod = "text-based"

    @field_validator("confidence", "risk_score", mode="before")
    @classmethod
    def round_percentages(cls, v):
        # models occasionally emit 82.5 for an integer percentage
        if isinstance(v, float):
            return int(round(v))
        return v


class InvalidImageStatus(CamelModel):
    status: Literal["INVALID_IMAGE"] = "INVALID_IMAGE"
    message: str
    image_type: Optional[str] = None
    suggestions: List[str] = []
