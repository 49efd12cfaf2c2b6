import logging
from typing import Optional

import requests
from pydantic import ValidationError

from breastcheck.application.errors import (
    DiagnosisError,
    FormValidationError,
    InvalidImageError,
    NetworkError,
    ServerError,
    UpstreamAuthError,
    UpstreamQuotaError,
)
from breastcheck.application.form import FormState
from breastcheck.domain.models import DiagnosisResult
from breastcheck.infrastructure.config import DEFAULT_TIMEOUT_SECONDS, Settings


logger = logging.getLogger(__name__)


class DiagnosisClient:
    """Submits one intake form to the diagnosis endpoint and classifies the outcome."""

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.endpoint = endpoint or self.settings.diagnosis_api_url
        self.timeout = timeout if timeout is not None else self.settings.request_timeout or DEFAULT_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def submit(self, form: FormState) -> DiagnosisResult:
        """
        Validate, encode, send and classify one submission.

        Raises:
            FormValidationError: Form is incomplete; nothing was sent
            ImageProcessingError: The selected image could not be read
            NetworkError: No response (connection failure or timeout)
            InvalidImageError: The model rejected the image
            ServerError: Any other non-2xx response
            DiagnosisError: Anything unexpected, carrying its message
        """
        is_valid, errors = form.validate()
        if not is_valid:
            raise FormValidationError(errors)

        try:
            medical_image = form.encoded_image(max_bytes=self.settings.max_image_bytes)
            request = form.build_request(medical_image=medical_image)
        except ValidationError as e:
            raise FormValidationError([err["msg"] for err in e.errors()]) from e
        except (TypeError, ValueError) as e:
            raise DiagnosisError(str(e) or "An unexpected error occurred") from e

        try:
            response = self.session.post(
                self.endpoint,
                json=request.to_wire(),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.error("Diagnosis request timed out after %ss", self.timeout)
            raise NetworkError("The diagnosis service took too long to respond. Please try again.") from e
        except requests.ConnectionError as e:
            logger.error("Diagnosis service unreachable: %s", e)
            raise NetworkError("Network error: Unable to connect to the diagnosis service") from e
        except requests.RequestException as e:
            logger.exception("Diagnosis request failed: %s", e)
            raise DiagnosisError(str(e) or "An unexpected error occurred") from e

        if response.status_code != 200:
            raise self._classify_failure(response)

        try:
            return DiagnosisResult.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error("Diagnosis service returned an unexpected body: %s", e)
            raise ServerError(response.status_code, "The diagnosis service returned an unexpected response.") from e

    @staticmethod
    def _classify_failure(response: requests.Response) -> DiagnosisError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if body.get("error") == "INVALID_IMAGE":
            return InvalidImageError(
                body.get("message") or "The uploaded image is not a valid medical image.",
                suggestions=body.get("suggestions") or [],
                detected_type=body.get("imageType"),
            )

        message = body.get("message") or "Server error occurred"
        logger.warning("Diagnosis service responded %s: %s", response.status_code, message)
        if response.status_code == 429:
            return UpstreamQuotaError(message)
        if response.status_code == 401:
            return UpstreamAuthError(message)
        return ServerError(response.status_code, message)
