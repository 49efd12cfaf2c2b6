YES_NO = ("Yes", "No")

HARDNESS_OPTIONS = {
    "soft": "Soft",
    "medium": "Medium",
    "hard": "Hard",
}

PAIN_SEVERITY_OPTIONS = {
    "none": "None",
    "mild": "Mild",
    "moderate": "Moderate",
    "severe": "Severe",
}

POSITION_OPTIONS = {
    "top": "Top",
    "bottom": "Bottom",
    "nipple_area": "Nipple Area",
}

DURATION_OPTIONS = {
    "1-3 days": "1-3 days",
    "4-7 days": "4-7 days (1 week)",
    "1-2 weeks": "1-2 weeks",
    "3-4 weeks": "3-4 weeks (1 month)",
    "1-3 months": "1-3 months",
    "3-6 months": "3-6 months",
    "6-12 months": "6-12 months",
    "over 1 year": "Over 1 year",
}

ACCEPTED_IMAGE_TYPES = ("image/jpeg", "image/jpg", "image/png")
MAX_IMAGE_BYTES = 10 * 1024 * 1024


def label_for(options: dict, value) -> str:
    if value is None or value == "":
        return "Not provided"
    return options.get(value, str(value).replace("_", " ").title())
