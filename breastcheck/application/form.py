import logging
from typing import Any, Dict, List, Optional

from breastcheck.application.image_encoder import attach_inline_data, describe_image
from breastcheck.domain.models import (
    DiagnosisRequest,
    MedicalImageRef,
    PatientInfo,
    SymptomSet,
)
from breastcheck.domain.options import MAX_IMAGE_BYTES, YES_NO
from breastcheck.domain.rules import (
    LUMP_DETAIL_FIELDS,
    TOGGLE_QUESTIONS,
    is_form_valid,
    missing_required_fields,
    validate_form_data,
)


logger = logging.getLogger(__name__)


FORM_FIELDS = (
    "name",
    "age",
    "symptoms",
    "feel_lump",
    "lump_painful",
    "lump_stiff",
    "hardness",
    "position",
    "pain_severity",
    "duration",
)


class FormState:
    """In-memory answers for one intake form, plus at most one image."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.values: Dict[str, Any] = {field: "" for field in FORM_FIELDS}
        self.toggles: Dict[str, str] = {key: "" for key in TOGGLE_QUESTIONS}
        self.image: Optional[MedicalImageRef] = None
        self._image_source = None

    def set_value(self, field: str, value) -> None:
        if field not in FORM_FIELDS:
            raise KeyError(f"Unknown form field: {field}")
        if field in TOGGLE_QUESTIONS:
            self.set_toggle(field, value)
            return
        self.values[field] = value

    def set_toggle(self, field: str, value: str) -> None:
        """Record a Yes/No answer in the gate state and the submission values together."""
        if field not in TOGGLE_QUESTIONS:
            raise KeyError(f"Unknown toggle: {field}")
        if value not in YES_NO and value != "":
            raise ValueError(f"Toggle value must be one of {YES_NO}")
        self.toggles[field] = value
        self.values[field] = value
        if field == "feel_lump" and value != "Yes":
            # details are hidden unless a lump is reported; never submit stale answers
            for detail in LUMP_DETAIL_FIELDS:
                self.values[detail] = ""

    def select_image(self, source, name: Optional[str] = None, mime_type: Optional[str] = None) -> MedicalImageRef:
        self.image = describe_image(source, name=name, mime_type=mime_type)
        self._image_source = source
        return self.image

    def remove_image(self) -> None:
        self.image = None
        self._image_source = None

    @property
    def has_image(self) -> bool:
        return self.image is not None

    @property
    def is_valid(self) -> bool:
        return is_form_valid(self.toggles)

    @property
    def lump_details_required(self) -> bool:
        return self.toggles.get("feel_lump") == "Yes"

    def as_dict(self) -> Dict[str, Any]:
        data = dict(self.values)
        data.update(self.toggles)
        return data

    def missing_fields(self) -> List[str]:
        return missing_required_fields(self.as_dict())

    def validate(self):
        return validate_form_data(self.as_dict())

    def encoded_image(self, max_bytes: int = MAX_IMAGE_BYTES) -> Optional[MedicalImageRef]:
        if self.image is None:
            return None
        return attach_inline_data(self.image, self._image_source, max_bytes=max_bytes)

    def build_request(self, medical_image: Optional[MedicalImageRef] = None) -> DiagnosisRequest:
        data = self.as_dict()
        patient = PatientInfo(name=str(data["name"]).strip(), age=int(data["age"]))
        symptoms = SymptomSet(
            hardness=data["hardness"],
            pain_severity=data["pain_severity"],
            position=data["position"],
            duration=data["duration"],
            feel_lump=data["feel_lump"],
            lump_painful=data["lump_painful"],
            lump_stiff=data["lump_stiff"],
            symptoms=data["symptoms"] or "",
        )
        return DiagnosisRequest(patient=patient, symptoms=symptoms, medical_image=medical_image)
