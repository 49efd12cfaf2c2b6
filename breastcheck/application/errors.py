"""Error taxonomy for the submission/response pipeline."""
from typing import List, Optional


class DiagnosisError(Exception):
    """Base class; also used for unexpected failures wrapped at the client seam."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FormValidationError(DiagnosisError):
    """Client-side field errors; raised before anything is sent."""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or "Form is incomplete")
        self.errors = list(errors)


class ImageProcessingError(DiagnosisError):
    """The selected image could not be read or encoded locally."""


class NetworkError(DiagnosisError):
    """No response reached the client (connection failure or timeout)."""


class ServerError(DiagnosisError):
    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status


class UpstreamQuotaError(ServerError):
    def __init__(self, message: str = "API quota exceeded. Please try again later."):
        super().__init__(429, message)


class UpstreamAuthError(ServerError):
    def __init__(self, message: str = "Invalid API configuration. Please contact support."):
        super().__init__(401, message)


class InvalidImageError(DiagnosisError):
    """The model judged the attached image not medically relevant."""

    def __init__(
        self,
        message: str,
        suggestions: Optional[List[str]] = None,
        detected_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.suggestions = list(suggestions or [])
        self.detected_type = detected_type


class ModelParseError(DiagnosisError):
    """Model output did not match the response schema. Never leaves the normalizer."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw
