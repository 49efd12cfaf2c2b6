"""Tests for model reply normalization and the text fallback."""
import json

import pytest

from breastcheck.application.errors import ModelParseError
from breastcheck.application.normalizer import (
    FALLBACK_CONFIDENCE,
    FALLBACK_DIAGNOSIS,
    FALLBACK_RECOMMENDATIONS,
    infer_risk_level,
    looks_like_image_rejection,
    normalize_model_output,
    parse_strict,
    fallback_result,
    salvage_result,
    synthesize_result,
)
from breastcheck.domain.models import DiagnosisResult, InvalidImageStatus


WELL_FORMED = {
    "diagnosis": "Likely benign fibroadenoma",
    "confidence": 78,
    "riskLevel": "Medium",
    "riskScore": 40,
    "recommendations": ["See a GP within two weeks", "Arrange a breast ultrasound"],
    "explanation": "Mobile, painless lump in a young patient. This is not a diagnosis.",
    "detailedAnalysis": {
        "symptomEvaluation": "Soft, mobile lump",
        "riskFactors": ["Age under 40"],
        "differentialDiagnosis": ["Fibroadenoma", "Cyst"],
        "clinicalCorrelations": "Consistent with benign change",
    },
    "followUpProtocol": {
        "urgency": "routine",
        "warningSigns": ["Rapid growth", "Skin dimpling"],
        "monitoring": "Monthly self-examination",
    },
    "metadata": {
        "analysisDate": "2024-06-01T10:00:00Z",
        "patientAge": 29,
        "symptoms": {"hardness": "soft"},
        "medicalImageProvided": False,
    },
    "imageAnalyzed": False,
    "analysisMethod": "text-based",
}


class TestStrictPath:
    """Well-formed replies."""

    def test_identity_for_well_formed_json(self):
        outcome = normalize_model_output(json.dumps(WELL_FORMED))
        assert isinstance(outcome, DiagnosisResult)
        assert outcome.to_wire() == WELL_FORMED

    def test_identity_for_minimal_json(self):
        minimal = {"diagnosis": "x", "confidence": 0, "riskLevel": "Low", "recommendations": []}
        assert normalize_model_output(json.dumps(minimal)).to_wire() == minimal

    def test_code_fences_are_trimmed(self):
        raw = "```json\n" + json.dumps(WELL_FORMED) + "\n```"
        assert normalize_model_output(raw).to_wire() == WELL_FORMED

    def test_invalid_image_status_object(self):
        raw = json.dumps({
            "status": "INVALID_IMAGE",
            "message": "This looks like a selfie.",
            "imageType": "selfie",
            "suggestions": ["Upload a mammogram"],
        })
        outcome = normalize_model_output(raw)
        assert isinstance(outcome, InvalidImageStatus)
        assert outcome.image_type == "selfie"
        assert outcome.suggestions == ["Upload a mammogram"]

    def test_error_marker_variant(self):
        outcome = parse_strict(json.dumps({"error": "INVALID_IMAGE", "message": "Screenshot"}))
        assert isinstance(outcome, InvalidImageStatus)
        assert outcome.message == "Screenshot"

    @pytest.mark.parametrize("raw", [
        "not json at all",
        "[1, 2, 3]",
        json.dumps({"diagnosis": "x", "confidence": 150, "riskLevel": "Low", "recommendations": []}),
        json.dumps({"diagnosis": "x", "confidence": 50, "riskLevel": "Severe", "recommendations": []}),
    ])
    def test_parse_strict_raises_model_parse_error(self, raw):
        with pytest.raises(ModelParseError):
            parse_strict(raw)


class TestRejectionFallback:
    """Unparsable replies that read like an image rejection."""

    @pytest.mark.parametrize("raw", [
        "This image is invalid for a breast health assessment.",
        "The uploaded photo is INVALID and cannot be used",
        "I'm sorry, this picture is not appropriate for medical analysis.",
        "Status: INVALID_IMAGE - the image shows a landscape",
    ])
    def test_classified_as_invalid_image(self, raw):
        outcome = normalize_model_output(raw)
        assert isinstance(outcome, InvalidImageStatus)
        assert outcome.message
        assert outcome.suggestions

    def test_message_is_truncated(self):
        outcome = normalize_model_output("invalid " * 200)
        assert len(outcome.message) <= 303

    def test_markers(self):
        assert looks_like_image_rejection("Not Appropriate")
        assert not looks_like_image_rejection("Everything looks fine")


class TestSynthesizedResult:
    """Unparsable replies without rejection markers."""

    @pytest.mark.parametrize("raw", [
        "",
        "   ",
        "Sorry, something went wrong.",
        "{ broken json",
        "Diagnosis: probable cyst. I recommend an ultrasound. Symptoms suggest benign change.",
        "Risk is HIGH given the hard, painful lump.",
    ])
    def test_always_returns_bounded_result(self, raw):
        outcome = normalize_model_output(raw)
        assert isinstance(outcome, DiagnosisResult)
        assert outcome.risk_level in {"Low", "Medium", "High"}
        assert 0 <= outcome.confidence <= 100
        assert outcome.diagnosis
        assert outcome.recommendations

    def test_none_reply(self):
        assert isinstance(normalize_model_output(None), DiagnosisResult)

    def test_keyword_extraction(self):
        raw = (
            "Diagnosis: probable benign cyst.\n"
            "- I recommend a breast ultrasound within two weeks.\n"
            "- We also recommend monthly self-examination.\n"
            "Your symptoms are consistent with hormonal change."
        )
        result = synthesize_result(raw)
        assert result.diagnosis == "probable benign cyst."
        assert len(result.recommendations) == 2
        assert "ultrasound" in result.recommendations[0]
        assert "hormonal" in result.detailed_analysis.symptom_evaluation
        assert result.confidence == FALLBACK_CONFIDENCE

    def test_defaults_without_anchors(self):
        result = synthesize_result("Please see a doctor.")
        assert result.diagnosis == FALLBACK_DIAGNOSIS
        assert result.recommendations == FALLBACK_RECOMMENDATIONS
        assert result.risk_level == "Medium"
        assert result.detailed_analysis is None

    def test_risk_inference(self):
        assert infer_risk_level("overall HIGH risk") == "High"
        assert infer_risk_level("risk appears low") == "Low"
        assert infer_risk_level("high and low signals") == "High"
        # substrings of other words do not count
        assert infer_risk_level("follow up below, highlighted") == "Medium"


def _has_json_syntax(text):
    return text is not None and any(token in text for token in ('{', '}', '":', '["'))


class TestSalvagedJson:
    """JSON replies that parse but break the schema."""

    @pytest.mark.parametrize("overrides", [
        {"riskLevel": "Moderate"},
        {"confidence": "80%"},
        {"confidence": 150},
        {"riskScore": "high"},
        {"recommendations": "See a GP"},
        {"detailedAnalysis": "not an object"},
    ])
    def test_no_json_reaches_the_result(self, overrides):
        reply = dict(WELL_FORMED, **overrides)
        outcome = normalize_model_output(json.dumps(reply))

        assert isinstance(outcome, DiagnosisResult)
        assert outcome.diagnosis == "Likely benign fibroadenoma"
        assert not _has_json_syntax(outcome.diagnosis)
        assert not _has_json_syntax(outcome.explanation)
        assert not any(_has_json_syntax(r) for r in outcome.recommendations)

    def test_usable_fields_are_kept(self):
        raw = json.dumps({
            "diagnosis": "Likely benign fibroadenoma",
            "confidence": 78,
            "riskLevel": "Moderate",
            "recommendations": ["See a GP"],
        })
        result = normalize_model_output(raw)
        assert result.diagnosis == "Likely benign fibroadenoma"
        assert result.confidence == 78
        assert result.risk_level == "Medium"
        assert result.recommendations == ["See a GP"]
        assert result.explanation is None

    def test_values_are_coerced_and_clamped(self):
        result = salvage_result({
            "diagnosis": "Cyst",
            "confidence": "80%",
            "riskLevel": "moderate to high",
            "riskScore": 140,
            "recommendations": "Book an ultrasound",
            "followUpProtocol": {"urgency": "soon"},
            "detailedAnalysis": ["not", "an", "object"],
        })
        assert result.confidence == 80
        assert result.risk_level == "High"
        assert result.risk_score == 100
        assert result.recommendations == ["Book an ultrasound"]
        assert result.follow_up_protocol.urgency == "soon"
        assert result.detailed_analysis is None

    def test_rejection_markers_in_json_prose_are_ignored(self):
        raw = json.dumps({
            "diagnosis": "Benign cyst",
            "confidence": "80%",
            "riskLevel": "Low",
            "recommendations": ["Self-checks are not appropriate as the only follow-up"],
        })
        outcome = normalize_model_output(raw)
        assert isinstance(outcome, DiagnosisResult)
        assert outcome.diagnosis == "Benign cyst"

    def test_malformed_invalid_image_object(self):
        raw = json.dumps({"status": "INVALID_IMAGE", "suggestions": "Upload a mammogram"})
        outcome = normalize_model_output(raw)
        assert isinstance(outcome, InvalidImageStatus)
        assert not _has_json_syntax(outcome.message)
        assert outcome.suggestions == ["Upload a mammogram"]

    def test_non_object_json_gets_defaults(self):
        result = normalize_model_output("[1, 2, 3]")
        assert result.diagnosis == FALLBACK_DIAGNOSIS
        assert result.recommendations == FALLBACK_RECOMMENDATIONS
        assert result.explanation is None

    def test_truncated_json_is_not_shown_as_explanation(self):
        result = normalize_model_output('{"diagnosis": "Cyst", "confidence": 7')
        assert isinstance(result, DiagnosisResult)
        assert result.explanation is None

    def test_fallback_result_ignores_markers(self):
        assert isinstance(fallback_result("This image is invalid."), DiagnosisResult)
        salvaged = fallback_result(json.dumps({"status": "INVALID_IMAGE", "message": "Selfie"}))
        assert isinstance(salvaged, DiagnosisResult)
        assert salvaged.diagnosis == FALLBACK_DIAGNOSIS
