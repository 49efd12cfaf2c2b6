import logging

from breastcheck.application.errors import InvalidImageError
from breastcheck.application.normalizer import fallback_result, normalize_model_output
from breastcheck.application.ports import LLMPort
from breastcheck.application.prompts import DEFAULT_IMAGE_SUGGESTIONS, PROMPT_VERSION, build_messages
from breastcheck.domain.models import (
    DiagnosisRequest,
    DiagnosisResult,
    InvalidImageStatus,
    ResultMetadata,
    utc_timestamp,
)


logger = logging.getLogger(__name__)


TEMPERATURE = 0.3
MAX_TOKENS = 2000


class DiagnosisAssessmentUseCase:
    def __init__(self, llm: LLMPort, temperature: float = TEMPERATURE, max_tokens: int = MAX_TOKENS):
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens

    def assess(self, request: DiagnosisRequest) -> DiagnosisResult:
        """
        Run one assessment against the model.

        Raises:
            InvalidImageError: If the model rejected the attached image
            ServerError: Propagated from the LLM adapter
        """
        image = request.medical_image
        with_image = image is not None and bool(image.inline_data)

        messages = build_messages(request)
        raw = self.llm.generate_diagnosis_json(
            messages,
            vision=with_image,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        outcome = normalize_model_output(raw)
        if isinstance(outcome, InvalidImageStatus):
            if not with_image:
                # nothing was attached, so there is no image to reject
                logger.warning("Image rejection for a text-only request; treating reply as a result")
                outcome = fallback_result(raw)
            else:
                logger.info("Model rejected the attached image (detected: %s)", outcome.image_type)
                raise InvalidImageError(
                    outcome.message,
                    suggestions=outcome.suggestions or list(DEFAULT_IMAGE_SUGGESTIONS),
                    detected_type=outcome.image_type,
                )

        return self._annotate(outcome, request, with_image)

    @staticmethod
    def _annotate(result: DiagnosisResult, request: DiagnosisRequest, with_image: bool) -> DiagnosisResult:
        # Only fills what the model left out; supplied fields pass through untouched.
        fields_set = result.model_fields_set
        if "metadata" not in fields_set or result.metadata is None:
            result.metadata = ResultMetadata(
                analysis_date=utc_timestamp(),
                patient_age=request.patient.age,
                symptoms=request.symptoms.to_wire(),
                medical_image_provided=with_image,
                prompt_version=PROMPT_VERSION,
            )
        if "image_analyzed" not in fields_set:
            result.image_analyzed = with_image
        if "analysis_method" not in fields_set:
            result.analysis_method = "vision-enhanced" if with_image else "text-based"
        return result
