from typing import List, Mapping, Tuple

from .options import (
    DURATION_OPTIONS,
    HARDNESS_OPTIONS,
    PAIN_SEVERITY_OPTIONS,
    POSITION_OPTIONS,
    YES_NO,
)


TOGGLE_QUESTIONS = {
    "feel_lump": "Do you feel a lump?",
    "lump_painful": "Is the lump painful?",
    "lump_stiff": "Does the lump feel stiff?",
}

# Required only while feel_lump == "Yes"
LUMP_DETAIL_FIELDS = {
    "hardness": ("Hardness of lump", HARDNESS_OPTIONS),
    "position": ("Position of lump", POSITION_OPTIONS),
    "pain_severity": ("Pain severity", PAIN_SEVERITY_OPTIONS),
    "duration": ("Duration of symptoms", DURATION_OPTIONS),
}


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_form_valid(form: Mapping) -> bool:
    """Gate for the submit control: every toggle question answered."""
    return all(not _blank(form.get(key)) for key in TOGGLE_QUESTIONS)


def required_fields(form: Mapping) -> List[str]:
    fields = list(TOGGLE_QUESTIONS)
    if form.get("feel_lump") == "Yes":
        fields.extend(LUMP_DETAIL_FIELDS)
    return fields


def missing_required_fields(form: Mapping) -> List[str]:
    return [key for key in required_fields(form) if _blank(form.get(key))]


def validate_name(name) -> Tuple[bool, str]:
    if _blank(name) or len(str(name).strip()) < 2:
        return False, "Name must be at least 2 characters long"
    return True, ""


def validate_age(age) -> Tuple[bool, str]:
    try:
        value = int(age)
    except (TypeError, ValueError):
        return False, "Age must be between 1 and 120 years"
    if isinstance(age, float) and age != value:
        return False, "Age must be a whole number"
    if value < 1 or value > 120:
        return False, "Age must be between 1 and 120 years"
    return True, ""


def validate_form_data(form: Mapping) -> Tuple[bool, List[str]]:
    """
    Validate a complete submission.

    Args:
        form: Mapping of snake_case form fields to their values

    Returns:
        Tuple of (is_valid, error_messages)
    """
    errors: List[str] = []

    ok, error = validate_name(form.get("name"))
    if not ok:
        errors.append(error)

    ok, error = validate_age(form.get("age"))
    if not ok:
        errors.append(error)

    for key, question in TOGGLE_QUESTIONS.items():
        value = form.get(key)
        if _blank(value):
            errors.append(f"Please answer: {question}")
        elif value not in YES_NO:
            errors.append(f"Invalid answer for: {question}")

    if form.get("feel_lump") == "Yes":
        for key, (label, options) in LUMP_DETAIL_FIELDS.items():
            value = form.get(key)
            if _blank(value):
                errors.append(f"{label} is required")
            elif value not in options:
                errors.append(f"{label} has an unknown value")

    return len(errors) == 0, errors
