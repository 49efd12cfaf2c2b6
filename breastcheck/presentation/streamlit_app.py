import logging
import os

import streamlit as st

from breastcheck.application.flow import AssessmentFlow, FlowState
from breastcheck.application.prompts import ACCEPTED_IMAGE_KINDS, REJECTED_IMAGE_KINDS
from breastcheck.domain.models import DiagnosisResult
from breastcheck.domain.options import (
    DURATION_OPTIONS,
    HARDNESS_OPTIONS,
    PAIN_SEVERITY_OPTIONS,
    POSITION_OPTIONS,
    YES_NO,
    label_for,
)
from breastcheck.domain.rules import LUMP_DETAIL_FIELDS, TOGGLE_QUESTIONS
from breastcheck.infrastructure.config import Settings
from breastcheck.infrastructure.diagnosis_client import DiagnosisClient


logger = logging.getLogger(__name__)


DISCLAIMER = (
    "⚕️ **Important Medical Disclaimer:** This assessment is for educational purposes only and is not a "
    "substitute for professional medical advice, diagnosis, or treatment. "
    "Always consult with a qualified healthcare provider."
)

WIDGET_PREFIX = "field_"

SELECT_OPTIONS = {
    "hardness": HARDNESS_OPTIONS,
    "position": POSITION_OPTIONS,
    "pain_severity": PAIN_SEVERITY_OPTIONS,
    "duration": DURATION_OPTIONS,
}

RISK_ICONS = {"Low": "🟢", "Medium": "🟡", "High": "🔴"}


def _init_session_state(settings: Settings):
    if "flow" not in st.session_state:
        st.session_state.flow = AssessmentFlow()
    if "client" not in st.session_state:
        st.session_state.client = DiagnosisClient(settings=settings)
    if "uploader_nonce" not in st.session_state:
        st.session_state.uploader_nonce = 0


def _clear_widgets():
    for key in list(st.session_state.keys()):
        if str(key).startswith(WIDGET_PREFIX):
            del st.session_state[key]
    st.session_state.uploader_nonce = st.session_state.get("uploader_nonce", 0) + 1


def reset_assessment():
    """Back to an empty form; clears result, errors and every widget value."""
    st.session_state.flow.reset()
    _clear_widgets()


def _sync_field(field: str):
    value = st.session_state.get(WIDGET_PREFIX + field)
    form = st.session_state.flow.form
    form.set_value(field, "" if value is None else value)
    if field == "feel_lump" and not form.lump_details_required:
        for detail in LUMP_DETAIL_FIELDS:
            st.session_state.pop(WIDGET_PREFIX + detail, None)


def _sync_image():
    uploaded = st.session_state.get(f"{WIDGET_PREFIX}image_{st.session_state.uploader_nonce}")
    form = st.session_state.flow.form
    if uploaded is None:
        form.remove_image()
    else:
        form.select_image(uploaded, name=uploaded.name, mime_type=uploaded.type)


def _render_form(flow: AssessmentFlow, settings: Settings):
    st.markdown("# 🎗️ Breast Cancer Risk Assessment")
    st.caption("Answer the questions below or ask a medical professional.")

    if flow.state == FlowState.API_ERROR and flow.api_error:
        st.error(f"❌ **Error:** {flow.api_error}")

    st.subheader("Patient Information")
    col1, col2 = st.columns([2, 1])
    with col1:
        st.text_input("Full name", key=WIDGET_PREFIX + "name", on_change=_sync_field, args=("name",))
    with col2:
        st.number_input(
            "Age", min_value=1, max_value=120, value=None, step=1,
            key=WIDGET_PREFIX + "age", on_change=_sync_field, args=("age",),
        )

    st.subheader("Symptoms Description")
    st.text_area(
        "Describe your symptoms (optional):",
        placeholder="e.g. I noticed a hard lump on my right breast 2 weeks ago. It's painless but growing",
        key=WIDGET_PREFIX + "symptoms",
        on_change=_sync_field,
        args=("symptoms",),
    )

    st.subheader("Assessment Questions")
    for field, question in TOGGLE_QUESTIONS.items():
        st.radio(
            f"{question} *", YES_NO, index=None, horizontal=True,
            key=WIDGET_PREFIX + field, on_change=_sync_field, args=(field,),
        )

    if flow.form.lump_details_required:
        st.subheader("Additional Lump Details")
        cols = st.columns(2)
        for i, (field, (label, _)) in enumerate(LUMP_DETAIL_FIELDS.items()):
            options = SELECT_OPTIONS[field]
            with cols[i % 2]:
                st.selectbox(
                    f"{label} *", list(options), index=None,
                    format_func=lambda v, options=options: label_for(options, v),
                    placeholder="Select...",
                    key=WIDGET_PREFIX + field, on_change=_sync_field, args=(field,),
                )

    st.subheader("File Upload")
    limit_mb = settings.max_image_bytes / (1024 * 1024)
    st.file_uploader(
        "Upload an image of the affected area",
        type=["jpg", "jpeg", "png"],
        help=f"Mammogram, ultrasound, MRI or clinical photo. JPEG or PNG, up to {limit_mb:g}MB.",
        key=f"{WIDGET_PREFIX}image_{st.session_state.uploader_nonce}",
        on_change=_sync_image,
    )

    missing = [m for m in flow.form.missing_fields() if m in LUMP_DETAIL_FIELDS]
    if flow.form.is_valid and missing:
        st.caption("Still required: " + ", ".join(LUMP_DETAIL_FIELDS[m][0] for m in missing))

    if st.button("Get Assessment", type="primary", disabled=not flow.can_submit, use_container_width=True):
        with st.spinner("🔬 Analyzing your answers..."):
            flow.submit(st.session_state.client)
        st.rerun()


def _render_image_error(flow: AssessmentFlow):
    error = flow.image_error
    st.markdown("# Image Validation Failed")
    st.caption("Please upload a valid medical image")
    st.error(f"**Invalid Medical Image**\n\n{error.message}")
    if error.detected_type:
        st.info(f"**Detected image type:** {error.detected_type}")

    col1, col2 = st.columns(2)
    with col1:
        st.markdown("✅ **Please upload:**\n" + "\n".join(f"- {kind}" for kind in ACCEPTED_IMAGE_KINDS))
    with col2:
        st.markdown("❌ **Avoid uploading:**\n" + "\n".join(f"- {kind}" for kind in REJECTED_IMAGE_KINDS))

    if flow.image_suggestions:
        st.markdown("**Suggestions:**\n" + "\n".join(f"- {s}" for s in flow.image_suggestions))

    col1, col2 = st.columns(2)
    with col1:
        if st.button("Try Again with Valid Image", use_container_width=True):
            reset_assessment()
            st.rerun()
    with col2:
        if st.button("Continue Without Image", use_container_width=True):
            flow.continue_without_image()
            st.session_state.uploader_nonce += 1
            st.rerun()


def format_result_markdown(result: DiagnosisResult) -> str:
    """Format a result as markdown for display."""
    lines = ["# 📋 Assessment Results\n"]

    icon = RISK_ICONS.get(result.risk_level, "⚪")
    risk = f"**Risk Level:** {icon} {result.risk_level}"
    if result.risk_score is not None:
        risk += f" (score {result.risk_score}/100)"
    lines.append(risk)
    lines.append(f"**Assessment Confidence:** {result.confidence}%\n")

    lines.append("## 🩺 Initial Assessment")
    lines.append(result.diagnosis or "Assessment completed - please consult a healthcare provider")
    lines.append("")

    if result.explanation:
        lines.append("## 📝 Explanation")
        lines.append(result.explanation)
        lines.append("")

    analysis = result.detailed_analysis
    if analysis:
        lines.append("## 🔬 Detailed Analysis")
        if analysis.symptom_evaluation:
            lines.append(f"**Symptom evaluation:** {analysis.symptom_evaluation}")
        if analysis.risk_factors:
            lines.append("**Risk factors:**")
            lines.extend(f"- {factor}" for factor in analysis.risk_factors)
        if analysis.differential_diagnosis:
            lines.append("**Differential diagnosis:**")
            lines.extend(f"- {item}" for item in analysis.differential_diagnosis)
        if analysis.clinical_correlations:
            lines.append(f"**Clinical correlations:** {analysis.clinical_correlations}")
        lines.append("")

    if result.recommendations:
        lines.append("## ✅ Recommendations")
        for i, step in enumerate(result.recommendations, 1):
            lines.append(f"{i}. {step}")
        lines.append("")

    follow_up = result.follow_up_protocol
    if follow_up:
        lines.append("## 📅 Follow-up")
        if follow_up.urgency:
            lines.append(f"**Urgency:** {follow_up.urgency}")
        if follow_up.warning_signs:
            lines.append("**Seek care promptly if you notice:**")
            lines.extend(f"- ⚠️ {sign}" for sign in follow_up.warning_signs)
        if follow_up.monitoring:
            lines.append(f"**Monitoring:** {follow_up.monitoring}")
        lines.append("")

    lines.append("## Assessment Details")
    if result.metadata:
        if result.metadata.analysis_date:
            lines.append(f"- Analysis date: {result.metadata.analysis_date[:10]}")
        if result.metadata.patient_age is not None:
            lines.append(f"- Patient age: {result.metadata.patient_age} years")
    if result.image_analyzed:
        lines.append("- ✅ Medical image analyzed and validated")
    lines.append(f"- Analysis type: {result.analysis_method}")

    if result.image_analyzed:
        lines.append("")
        lines.append(
            "**Enhanced AI Analysis:** this assessment combines visual findings from your image "
            "with the symptoms you reported."
        )

    return "\n".join(lines)


def _render_result(flow: AssessmentFlow):
    st.warning(DISCLAIMER)
    st.markdown(format_result_markdown(flow.result))
    if st.button("New Assessment", type="primary", use_container_width=True):
        reset_assessment()
        st.rerun()


def main():
    logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))
    settings = Settings()

    st.set_page_config(
        page_title="Breast Health Assessment",
        page_icon="🎗️",
        layout="centered",
    )

    _init_session_state(settings)
    flow: AssessmentFlow = st.session_state.flow

    if flow.state == FlowState.RESULT:
        _render_result(flow)
    elif flow.state == FlowState.IMAGE_ERROR:
        _render_image_error(flow)
    else:
        _render_form(flow, settings)


if __name__ == "__main__":
    main()
