import logging
from enum import Enum
from typing import List, Optional

from breastcheck.application.errors import (
    DiagnosisError,
    FormValidationError,
    ImageProcessingError,
    InvalidImageError,
    NetworkError,
    ServerError,
    UpstreamAuthError,
    UpstreamQuotaError,
)
from breastcheck.application.form import FormState
from breastcheck.domain.models import DiagnosisResult


logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    FORM = "form"
    LOADING = "loading"
    RESULT = "result"
    IMAGE_ERROR = "image_error"
    API_ERROR = "api_error"


GENERIC_ERROR_MESSAGE = "An error occurred while processing your request. Please try again."


def user_message_for(error: Exception) -> str:
    """Map a pipeline failure to text that is safe to show the patient."""
    if isinstance(error, FormValidationError):
        return "Please complete the form: " + "; ".join(error.errors)
    if isinstance(error, ImageProcessingError):
        return error.message
    if isinstance(error, NetworkError):
        return "Network error: Unable to connect to the diagnosis service. Please check your connection and try again."
    if isinstance(error, UpstreamQuotaError):
        return "The assessment service is busy right now. Please try again later."
    if isinstance(error, UpstreamAuthError):
        return "The assessment service is not configured correctly. Please contact support."
    if isinstance(error, ServerError):
        if error.status and 400 <= error.status < 500 and error.message:
            return error.message
        return GENERIC_ERROR_MESSAGE
    return GENERIC_ERROR_MESSAGE


class AssessmentFlow:
    """
    Result presentation state machine.

    form -> loading -> result | image_error | api_error -> (reset) -> form
    """

    def __init__(self, form: Optional[FormState] = None):
        self.form = form or FormState()
        self.state = FlowState.FORM
        self.result: Optional[DiagnosisResult] = None
        self.image_error: Optional[InvalidImageError] = None
        self.api_error: Optional[str] = None

    @property
    def can_submit(self) -> bool:
        return self.state in (FlowState.FORM, FlowState.API_ERROR) and self.form.is_valid

    def submit(self, client) -> FlowState:
        if self.state == FlowState.LOADING:
            logger.warning("Submission ignored: a request is already in flight")
            return self.state
        if self.state in (FlowState.RESULT, FlowState.IMAGE_ERROR):
            raise RuntimeError(f"Cannot submit from state {self.state.value}; reset first")

        self.state = FlowState.LOADING
        self.result = None
        self.image_error = None
        self.api_error = None
        try:
            self.result = client.submit(self.form)
            self.state = FlowState.RESULT
        except InvalidImageError as e:
            self.image_error = e
            self.state = FlowState.IMAGE_ERROR
        except DiagnosisError as e:
            logger.warning("Submission failed: %s", type(e).__name__)
            self.api_error = user_message_for(e)
            self.state = FlowState.API_ERROR
        except Exception as e:
            logger.exception("Unexpected submission failure: %s", e)
            self.api_error = GENERIC_ERROR_MESSAGE
            self.state = FlowState.API_ERROR
        return self.state

    def reset(self) -> None:
        self.form.reset()
        self.result = None
        self.image_error = None
        self.api_error = None
        self.state = FlowState.FORM

    def continue_without_image(self) -> None:
        """Leave the image-error view keeping the answers but dropping the image."""
        if self.state != FlowState.IMAGE_ERROR:
            return
        self.form.remove_image()
        self.image_error = None
        self.state = FlowState.FORM

    @property
    def image_suggestions(self) -> List[str]:
        return self.image_error.suggestions if self.image_error else []
