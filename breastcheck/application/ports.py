from typing import List, Protocol


class LLMPort(Protocol):
    def generate_diagnosis_json(
        self,
        messages: List[dict],
        *,
        vision: bool = False,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """
        Accepts chat-style messages and returns the model's raw text reply,
        which is expected (not guaranteed) to be a single JSON object.
        """
        ...
