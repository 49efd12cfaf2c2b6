import logging
from typing import List

from breastcheck.application.errors import ServerError, UpstreamAuthError, UpstreamQuotaError
from breastcheck.application.ports import LLMPort
from breastcheck.infrastructure.config import Settings


logger = logging.getLogger(__name__)


class MistralLLMAdapter(LLMPort):
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._client = None
        self._model = self.settings.mistral_model
        self._vision_model = self.settings.mistral_vision_model
        self._init_client()

    def _init_client(self):
        api_key = self.settings.mistral_api_key
        if not api_key:
            logger.error("Mistral API key is missing.")
            self._client = None
            return
        from mistralai import Mistral
        self._client = Mistral(api_key=api_key)

    def generate_diagnosis_json(
        self,
        messages: List[dict],
        *,
        vision: bool = False,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        if not self._client:
            raise UpstreamAuthError()
        model = self._vision_model if vision else self._model
        try:
            response = self._client.chat.complete(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            logger.exception("Mistral chat call failed: %s", e)
            raise _classify_upstream_error(e) from e

        content = response.choices[0].message.content
        if isinstance(content, list):
            # vision models may answer with typed chunks
            content = "".join(getattr(chunk, "text", "") or "" for chunk in content)
        return content or ""


def _classify_upstream_error(error: Exception) -> ServerError:
    status = getattr(error, "status_code", None)
    text = str(error).lower()
    if status == 401 or "unauthorized" in text or "invalid api key" in text:
        return UpstreamAuthError()
    if status == 429 or "quota" in text or "rate limit" in text:
        return UpstreamQuotaError()
    return ServerError(500, "An error occurred while processing your request. Please try again.")
