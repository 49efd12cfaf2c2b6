from typing import List, Optional

from breastcheck.domain.models import DiagnosisRequest, MedicalImageRef, PatientInfo, SymptomSet
from breastcheck.domain.options import (
    DURATION_OPTIONS,
    HARDNESS_OPTIONS,
    PAIN_SEVERITY_OPTIONS,
    POSITION_OPTIONS,
    label_for,
)


# Bump together with the field list in build_schema_instructions()
# and the DiagnosisResult / InvalidImageStatus models.
PROMPT_VERSION = "2024-06-v2"


SYSTEM_PROMPT = (
    "You are a medical AI assistant specializing in breast health assessment. "
    "You provide educational information and risk assessments based on symptoms, "
    "but always emphasize the need for professional medical consultation. "
    "You are not a doctor and this is not a diagnosis."
)


ACCEPTED_IMAGE_KINDS = [
    "Mammogram images",
    "Breast ultrasound scans",
    "MRI breast imaging",
    "Clinical breast examination photos taken in an appropriate medical context",
]

REJECTED_IMAGE_KINDS = [
    "Selfies or casual photographs",
    "Personal photos unrelated to a medical examination",
    "Images of other body parts",
    "Screenshots or non-medical content",
    "Random objects or landscapes",
]

DEFAULT_IMAGE_SUGGESTIONS = [
    "Upload a mammogram, breast ultrasound or breast MRI image",
    "Use a clinical examination photo taken in an appropriate medical context",
    "Or continue the assessment without an image",
]


def build_schema_instructions() -> str:
    return (
        "You MUST return ONLY a valid JSON object. Do NOT include any markdown, code fences, or explanations. "
        "JSON keys: diagnosis (string), confidence (integer 0-100), riskLevel (one of 'Low', 'Medium', 'High'), "
        "riskScore (integer 0-100), recommendations (array of strings), explanation (string), "
        "detailedAnalysis (object), followUpProtocol (object), metadata (object).\n"
        "detailedAnalysis MUST have: symptomEvaluation (string), riskFactors (array of strings), "
        "differentialDiagnosis (array of strings), clinicalCorrelations (string).\n"
        "followUpProtocol MUST have: urgency (string), warningSigns (array of strings), monitoring (string).\n"
        "metadata MUST have: analysisDate (ISO date string), patientAge (integer), symptoms (object), "
        "medicalImageProvided (boolean).\n"
        "Always include a disclaimer in the explanation that this is not a substitute for professional diagnosis.\n"
        "Start your response with { and end with }. Return valid JSON only."
    )


def build_image_validation_instructions() -> str:
    accept = "\n".join(f"- {kind}" for kind in ACCEPTED_IMAGE_KINDS)
    reject = "\n".join(f"- {kind}" for kind in REJECTED_IMAGE_KINDS)
    return (
        "IMAGE VALIDATION PROTOCOL (perform this FIRST):\n"
        "Decide whether the attached image is medically relevant to a breast health assessment.\n"
        f"ACCEPT:\n{accept}\n"
        f"REJECT:\n{reject}\n"
        "If the image must be rejected, STOP and return ONLY this JSON object:\n"
        '{"status": "INVALID_IMAGE", "message": "<why the image cannot be used>", '
        '"imageType": "<what the image appears to show>", "suggestions": ["<what to upload instead>"]}\n'
        "Only if the image is accepted, continue with the full assessment and combine "
        "your visual findings with the reported symptoms."
    )


def build_system_prompt(has_image: bool) -> str:
    parts = [SYSTEM_PROMPT]
    if has_image:
        parts.append(build_image_validation_instructions())
    parts.append(build_schema_instructions())
    return "\n\n".join(parts)


def build_user_prompt(patient: PatientInfo, symptoms: SymptomSet, image: Optional[MedicalImageRef] = None) -> str:
    if image is not None:
        image_line = f"Medical image provided: {image.name} ({image.mime_type}) - attached below"
    else:
        image_line = "No medical image provided"

    lines = [
        "Please provide a breast health risk assessment for the following patient information.",
        "",
        "Patient information:",
        f"- Name: {patient.name}",
        f"- Age: {patient.age} years",
        "",
        "Symptoms and clinical findings:",
        f"- Feels a lump: {symptoms.feel_lump or 'Not provided'}",
        f"- Lump is painful: {symptoms.lump_painful or 'Not provided'}",
        f"- Lump feels stiff: {symptoms.lump_stiff or 'Not provided'}",
        f"- Lump hardness: {label_for(HARDNESS_OPTIONS, symptoms.hardness)}",
        f"- Pain severity: {label_for(PAIN_SEVERITY_OPTIONS, symptoms.pain_severity)}",
        f"- Lump position: {label_for(POSITION_OPTIONS, symptoms.position)}",
        f"- Duration of symptoms: {label_for(DURATION_OPTIONS, symptoms.duration)}",
        f"- Patient description: {symptoms.symptoms.strip() or 'None given'}",
        f"- {image_line}",
        "",
        "Consider age-related risk factors, symptom characteristics, duration and progression, "
        "and the need for professional medical evaluation.",
        "Provide a confidence level (0-100), categorize risk as Low, Medium or High, "
        "and give specific, actionable recommendations.",
        "Respond in the JSON format specified in the system message.",
    ]
    return "\n".join(lines)


def build_messages(request: DiagnosisRequest) -> List[dict]:
    image = request.medical_image
    has_image = image is not None and bool(image.inline_data)
    text = build_user_prompt(request.patient, request.symptoms, image if has_image else None)

    if has_image:
        user_content = [
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": image.data_url},
        ]
    else:
        user_content = text

    return [
        {"role": "system", "content": build_system_prompt(has_image)},
        {"role": "user", "content": user_content},
    ]
