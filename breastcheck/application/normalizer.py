import json
import logging
import math
import re
from typing import List, Optional, Union, get_args

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from breastcheck.application.errors import ModelParseError
from breastcheck.domain.models import (
    AnalysisMethod,
    DetailedAnalysis,
    DiagnosisResult,
    FollowUpProtocol,
    InvalidImageStatus,
    ResultMetadata,
)


logger = logging.getLogger(__name__)


NormalizedResponse = Union[DiagnosisResult, InvalidImageStatus]

REJECTION_MARKERS = ("invalid_image", "invalid", "not appropriate")
EXCERPT_LENGTH = 300
DEFAULT_REJECTION_MESSAGE = "The uploaded image could not be used for this assessment."

FALLBACK_CONFIDENCE = 85
FALLBACK_DIAGNOSIS = "Assessment completed - please consult a healthcare provider"
FALLBACK_RECOMMENDATIONS = [
    "Consult with a healthcare provider for proper evaluation",
    "Monitor symptoms and any changes",
    "Follow up as recommended by your doctor",
]
FALLBACK_REJECTION_SUGGESTIONS = [
    "Upload a mammogram, ultrasound or MRI image of the breast",
    "Or continue the assessment without an image",
]


def extract_json_object(raw: str) -> str:
    """Trim prose or code fences around the outermost ``{...}``."""
    raw = raw.strip()
    if not raw.startswith("{"):
        start_idx = raw.find("{")
        if start_idx != -1:
            raw = raw[start_idx:]
    if not raw.endswith("}"):
        end_idx = raw.rfind("}")
        if end_idx != -1:
            raw = raw[:end_idx + 1]
    return raw


def _is_invalid_image_payload(data: dict) -> bool:
    return data.get("status") == "INVALID_IMAGE" or data.get("error") == "INVALID_IMAGE"


def parse_strict(raw: str) -> NormalizedResponse:
    """
    Parse a model reply against the response schema.

    Raises:
        ModelParseError: If the reply is not JSON or does not match either shape
    """
    try:
        data = json.loads(extract_json_object(raw))
    except json.JSONDecodeError as e:
        raise ModelParseError(f"Reply is not JSON: {e}", raw) from e
    if not isinstance(data, dict):
        raise ModelParseError("Reply is not a JSON object", raw)

    try:
        if _is_invalid_image_payload(data):
            payload = dict(data)
            payload.pop("error", None)
            payload["status"] = "INVALID_IMAGE"
            return InvalidImageStatus.model_validate(payload)
        return DiagnosisResult.model_validate(data)
    except ValidationError as e:
        raise ModelParseError(f"Reply does not match schema: {e.error_count()} error(s)", raw) from e


# --- Text fallback -----------------------------------------------------------
#
# Heuristics, applied only when parse_strict() fails:
#   1. any rejection marker (case-insensitive) -> image rejected, message is an excerpt
#   2. diagnosis: first sentence mentioning "diagnosis"/"assessment", else a fixed default
#   3. recommendations: up to five lines or sentences mentioning "recommend", else defaults
#   4. risk level: the word "high" wins over "low"; neither -> Medium
#   5. confidence is always FALLBACK_CONFIDENCE

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")


def _excerpt(text: str, limit: int = EXCERPT_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def _sentences(raw: str) -> List[str]:
    return [s.strip(" -*•\t\"'{}[],") for s in _SENTENCE_SPLIT.split(raw) if s.strip(" -*•\t\"'{}[],")]


def looks_like_image_rejection(raw: str) -> bool:
    lowered = raw.lower()
    return any(marker in lowered for marker in REJECTION_MARKERS)


def infer_risk_level(raw: str) -> str:
    lowered = raw.lower()
    if re.search(r"\bhigh\b", lowered):
        return "High"
    if re.search(r"\blow\b", lowered):
        return "Low"
    return "Medium"


def _find_anchor(sentences: List[str], *anchors: str) -> Optional[str]:
    for sentence in sentences:
        lowered = sentence.lower()
        if any(anchor in lowered for anchor in anchors):
            return sentence
    return None


def _strip_label(sentence: str, label: str) -> str:
    # "Diagnosis: foo" -> "foo"
    match = re.match(rf"\s*{label}\w*\s*[:\-]\s*(.+)", sentence, flags=re.IGNORECASE)
    return match.group(1).strip() if match else sentence


def rejection_from_text(raw: str) -> InvalidImageStatus:
    return InvalidImageStatus(
        message=_excerpt(raw) or DEFAULT_REJECTION_MESSAGE,
        suggestions=list(FALLBACK_REJECTION_SUGGESTIONS),
    )


def synthesize_result(raw: str) -> DiagnosisResult:
    """Best-effort DiagnosisResult from free text. Never raises."""
    sentences = _sentences(raw or "")

    diagnosis = _find_anchor(sentences, "diagnosis", "assessment")
    diagnosis = _strip_label(diagnosis, "diagnosis")[:200] if diagnosis else FALLBACK_DIAGNOSIS

    recommendations = [
        _strip_label(s, "recommendation")[:200]
        for s in sentences
        if "recommend" in s.lower()
    ][:5]
    if not recommendations:
        recommendations = list(FALLBACK_RECOMMENDATIONS)

    symptom_note = _find_anchor(sentences, "symptom")
    # a truncated JSON reply is not prose worth showing
    explanation = None
    if raw and raw.strip() and "{" not in raw:
        explanation = _excerpt(raw, 1000)

    result = DiagnosisResult(
        diagnosis=diagnosis or FALLBACK_DIAGNOSIS,
        confidence=FALLBACK_CONFIDENCE,
        risk_level=infer_risk_level(raw or ""),
        recommendations=recommendations,
        explanation=explanation,
    )
    if symptom_note:
        result.detailed_analysis = DetailedAnalysis(symptom_evaluation=symptom_note[:500])
    return result


# --- Salvage -----------------------------------------------------------------
#
# Replies that are JSON but fail validation keep their usable fields; the
# keyword heuristics above never see them.

_UNPARSED = object()


def _load_json(raw: str):
    try:
        return json.loads(extract_json_object(raw))
    except json.JSONDecodeError:
        return _UNPARSED


def _field(data: dict, name: str):
    return data.get(to_camel(name), data.get(name))


def _text(value, limit: int) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()[:limit]
    return None


def _text_list(value) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [item.strip()[:200] for item in value if isinstance(item, str) and item.strip()]


def _percentage(value) -> Optional[int]:
    # "80%", "80", 80.4 -> 80; clamped to 0-100
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        match = re.search(r"-?\d+(?:\.\d+)?", value)
        if not match:
            return None
        value = match.group()
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return max(0, min(100, int(round(number))))


def _risk_level(value) -> str:
    if not isinstance(value, str):
        return "Medium"
    for level in ("Low", "Medium", "High"):
        if value.strip().lower() == level.lower():
            return level
    return infer_risk_level(value)


def _nested(model, value):
    if not isinstance(value, dict):
        return None
    try:
        return model.model_validate(value)
    except ValidationError:
        return None


def salvage_rejection(data: dict) -> InvalidImageStatus:
    return InvalidImageStatus(
        message=_text(data.get("message"), EXCERPT_LENGTH) or DEFAULT_REJECTION_MESSAGE,
        image_type=_text(_field(data, "image_type"), 100),
        suggestions=_text_list(data.get("suggestions")) or list(FALLBACK_REJECTION_SUGGESTIONS),
    )


def salvage_result(data) -> DiagnosisResult:
    """Keep what is usable from a JSON reply that failed validation. Never raises."""
    if not isinstance(data, dict):
        data = {}

    confidence = _percentage(data.get("confidence"))
    fields = {
        "diagnosis": _text(data.get("diagnosis"), 200) or FALLBACK_DIAGNOSIS,
        "confidence": FALLBACK_CONFIDENCE if confidence is None else confidence,
        "risk_level": _risk_level(_field(data, "risk_level")),
        "recommendations": _text_list(data.get("recommendations"))[:10] or list(FALLBACK_RECOMMENDATIONS),
    }

    explanation = _text(data.get("explanation"), 2000)
    if explanation:
        fields["explanation"] = explanation
    risk_score = _percentage(_field(data, "risk_score"))
    if risk_score is not None:
        fields["risk_score"] = risk_score
    for name, model in (
        ("detailed_analysis", DetailedAnalysis),
        ("follow_up_protocol", FollowUpProtocol),
        ("metadata", ResultMetadata),
    ):
        nested = _nested(model, _field(data, name))
        if nested is not None:
            fields[name] = nested
    image_analyzed = _field(data, "image_analyzed")
    if isinstance(image_analyzed, bool):
        fields["image_analyzed"] = image_analyzed
    analysis_method = _field(data, "analysis_method")
    if analysis_method in get_args(AnalysisMethod):
        fields["analysis_method"] = analysis_method

    return DiagnosisResult(**fields)


def fallback_result(raw: Optional[str]) -> DiagnosisResult:
    """A DiagnosisResult for any reply, ignoring rejection markers."""
    raw = raw or ""
    data = _load_json(raw)
    if data is not _UNPARSED:
        return salvage_result(data)
    return synthesize_result(raw)


def normalize_model_output(raw: Optional[str]) -> NormalizedResponse:
    """
    Turn a model reply into a typed outcome.

    Well-formed replies come back unchanged. JSON that fails validation is
    salvaged field by field, and only text that does not parse at all goes
    through the keyword heuristics, so a successful model call always yields
    a result and never surfaces raw JSON.
    """
    raw = raw or ""
    try:
        return parse_strict(raw)
    except ModelParseError as e:
        logger.warning("Model reply failed schema validation: %s. Raw: %s", e, raw[:200])

    data = _load_json(raw)
    if data is not _UNPARSED:
        if isinstance(data, dict) and _is_invalid_image_payload(data):
            return salvage_rejection(data)
        return salvage_result(data)

    if looks_like_image_rejection(raw):
        return rejection_from_text(raw)
    return synthesize_result(raw)
