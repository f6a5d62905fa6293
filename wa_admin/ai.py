"""
Automatic reply generation via an OpenAI-compatible chat completion API.
"""

import logging
from typing import List, Optional

import httpx

from wa_admin.config import Settings
from wa_admin.utils import ProviderError, check_provider_response

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "Eres un asistente de atención al cliente profesional y amigable.\n"
    "Responde de manera clara, concisa y útil.\n"
    "Mantén un tono profesional pero cálido.\n"
    "Si no tienes información específica, sugiere contactar directamente con el equipo.\n"
    "Responde SIEMPRE en español."
)

FALLBACK_REPLY = "Lo siento, no pude procesar tu mensaje en este momento."

MAX_TOKENS = 300
TEMPERATURE = 0.7


class ReplyGenerationError(ProviderError):
    provider = "OpenAI"


def build_messages(message: str, history: List[str], custom_prompt: Optional[str] = None) -> List[dict]:
    """
    Build the chat turns for a completion request.

    History is alternated by position (even index = user, odd = assistant)
    and the current message is always the last user turn.
    """
    messages = [{"role": "system", "content": custom_prompt or DEFAULT_SYSTEM_PROMPT}]
    for index, text in enumerate(history):
        messages.append({"role": "user" if index % 2 == 0 else "assistant", "content": text})
    messages.append({"role": "user", "content": message})
    return messages


class ReplyGenerator:
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        api_url: str = "https://api.openai.com/v1/chat/completions",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReplyGenerator":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            api_url=settings.OPENAI_API_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    def generate(self, message: str, history: List[str], custom_prompt: Optional[str] = None) -> str:
        """
        Generate a reply to ``message`` given up to 10 earlier texts.

        Returns the generated text, or FALLBACK_REPLY when the provider
        returns no content.

        Raises:
            ReplyGenerationError: on any non-2xx status
        """
        payload = {
            "model": self.model,
            "messages": build_messages(message, history, custom_prompt),
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
        }
        logger.debug(f"Completion request: model={self.model}, history={len(history)}")

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )

        data = check_provider_response(response, ReplyGenerationError)

        content = ""
        choices = data.get("choices") or []
        if choices:
            content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            logger.warning("Completion returned no content, using fallback reply")
            return FALLBACK_REPLY
        return content
