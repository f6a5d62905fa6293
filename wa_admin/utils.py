"""
Shared helpers for calls to the messaging and completion providers.
"""

import logging
import time
import uuid

import httpx

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """A provider answered with a non-success HTTP status."""

    provider = "Provider"

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"{self.provider} API error: {status_code} - {body}")


def check_provider_response(response: httpx.Response, error_cls: type) -> dict:
    """
    Return the decoded JSON body of a successful response.

    Args:
        response: Response from the provider
        error_cls: ProviderError subclass raised on a non-2xx status

    Raises:
        error_cls: carrying the status code and raw body text
    """
    logger.debug(f"{error_cls.provider} response status: {response.status_code}")
    if not response.is_success:
        logger.error(f"{error_cls.provider} error: {response.status_code} {response.text}")
        raise error_cls(response.status_code, response.text)
    return response.json()


def placeholder_message_id(prefix: str) -> str:
    """Local id used when the provider does not return one, e.g. ``ai_1736935200000_3f9c2a1b``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
