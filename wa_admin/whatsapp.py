"""
Outbound delivery through the WhatsApp Cloud API.

Endpoint: ``{base_url}/{api_version}/{phone_number_id}/messages``
"""

import logging
from typing import Optional

import httpx

from wa_admin.config import Settings
from wa_admin.utils import ProviderError, check_provider_response, placeholder_message_id

logger = logging.getLogger(__name__)


class WhatsAppAPIError(ProviderError):
    provider = "WhatsApp"


class WhatsAppClient:
    def __init__(
        self,
        access_token: str,
        api_version: str = "v23.0",
        base_url: str = "https://graph.facebook.com",
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.access_token = access_token
        self.api_version = api_version
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "WhatsAppClient":
        return cls(
            access_token=settings.WHATSAPP_ACCESS_TOKEN,
            api_version=settings.WHATSAPP_API_VERSION,
            base_url=settings.WHATSAPP_API_BASE_URL,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    def messages_url(self, phone_number_id: str) -> str:
        return f"{self.base_url}/{self.api_version}/{phone_number_id}/messages"

    def send_text(self, phone_number_id: str, to: str, text: str) -> dict:
        """
        Send a plain text message.

        Returns:
            The provider's JSON response, e.g.
            ``{"messages": [{"id": "wamid..."}], ...}``

        Raises:
            WhatsAppAPIError: on any non-2xx status
        """
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": text},
        }
        logger.info(f"Sending WhatsApp text to {to} via {phone_number_id}")

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(
                self.messages_url(phone_number_id),
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )

        return check_provider_response(response, WhatsAppAPIError)


def extract_message_id(response: Optional[dict], prefix: str) -> str:
    """First ``messages[].id`` of a send response, or a local placeholder."""
    messages = (response or {}).get("messages") or []
    if messages and messages[0].get("id"):
        return messages[0]["id"]
    return placeholder_message_id(prefix)
