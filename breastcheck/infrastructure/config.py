import os
import logging

try:
    import streamlit as st  # type: ignore
    _HAS_STREAMLIT = True
except ImportError:
    _HAS_STREAMLIT = False

from breastcheck.domain.options import MAX_IMAGE_BYTES

logger = logging.getLogger(__name__)


DEFAULT_DIAGNOSIS_API_URL = "http://localhost:8000/api/diagnosis"
DEFAULT_TIMEOUT_SECONDS = 60.0


def get_secret(name: str, default: str | None = None) -> str | None:
    # Prefer Streamlit secrets if available
    if _HAS_STREAMLIT:
        try:
            if name in st.secrets:
                return str(st.secrets.get(name))
        except FileNotFoundError:
            # no secrets.toml outside `streamlit run`
            pass
        except Exception as e:
            logger.debug("Streamlit secrets unavailable: %s", e)
    # Fallback to environment variables
    return os.environ.get(name, default)


def _number(name: str, default: float) -> float:
    raw = get_secret(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


class Settings:
    @property
    def mistral_api_key(self) -> str | None:
        return get_secret("MISTRAL_API_KEY")

    @property
    def mistral_model(self) -> str:
        return get_secret("MISTRAL_MODEL", "mistral-large-latest") or "mistral-large-latest"

    @property
    def mistral_vision_model(self) -> str:
        return get_secret("MISTRAL_VISION_MODEL", "pixtral-large-latest") or "pixtral-large-latest"

    @property
    def diagnosis_api_url(self) -> str:
        return get_secret("DIAGNOSIS_API_URL", DEFAULT_DIAGNOSIS_API_URL) or DEFAULT_DIAGNOSIS_API_URL

    @property
    def request_timeout(self) -> float:
        return _number("DIAGNOSIS_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)

    @property
    def max_image_bytes(self) -> int:
        return int(_number("MAX_IMAGE_BYTES", MAX_IMAGE_BYTES))
