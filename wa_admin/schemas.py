"""
Pydantic schemas for request/response validation.

This module contains:
- WhatsApp Cloud API webhook payload models
- Operator control and auth request models
- Response models for API responses
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# WhatsApp Webhook Payload Models
# =============================================================================

class ContactProfile(BaseModel):
    name: Optional[str] = None


class Contact(BaseModel):
    wa_id: Optional[str] = None
    profile: Optional[ContactProfile] = None


class TextBody(BaseModel):
    body: str = ""


class InboundMessage(BaseModel):
    """
    A text element of ``value.messages``.

    Elements of other types are skipped by the pipeline before they reach
    this model, so only text messages are validated.
    """
    model_config = ConfigDict(extra="allow")

    from_: str = Field(..., alias="from")
    id: str
    timestamp: Optional[str] = None
    type: str
    text: Optional[TextBody] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def timestamp_as_string(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @property
    def body(self) -> str:
        return self.text.body if self.text else ""


class ChangeMetadata(BaseModel):
    display_phone_number: Optional[str] = None
    phone_number_id: Optional[str] = None


class ChangeValue(BaseModel):
    model_config = ConfigDict(extra="allow")

    messaging_product: Optional[str] = None
    metadata: Optional[ChangeMetadata] = None
    contacts: List[Contact] = Field(default_factory=list)
    # raw elements; text ones are validated one by one as InboundMessage
    messages: List[Any] = Field(default_factory=list)


class Change(BaseModel):
    """
    One element of ``entry.changes``. ``value`` is only validated as a
    ChangeValue for the ``messages`` field.
    """
    field: str
    value: Optional[dict] = None


class Entry(BaseModel):
    id: Optional[str] = None
    changes: List[Change] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    """
    Pydantic model for the webhook POST body.

    Shape: ``{object, entry: [{changes: [{field, value: {messages?, contacts?, metadata?}}]}]}``
    """
    object: Optional[str] = None
    entry: List[Entry] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "object": "whatsapp_business_account",
                    "entry": [{
                        "id": "102290129340398",
                        "changes": [{
                            "field": "messages",
                            "value": {
                                "messaging_product": "whatsapp",
                                "metadata": {"phone_number_id": "106540352242922"},
                                "contacts": [{"wa_id": "5215512345678", "profile": {"name": "Ana"}}],
                                "messages": [{
                                    "from": "5215512345678",
                                    "id": "wamid.HBgLNTIx",
                                    "timestamp": "1736935200",
                                    "type": "text",
                                    "text": {"body": "Hola"},
                                }],
                            },
                        }],
                    }],
                }
            ]
        }
    }


# =============================================================================
# Operator Control Request Models
# =============================================================================

class ManualAction(str, Enum):
    GET_CHATS = "get_chats"
    GET_MESSAGES = "get_messages"
    TOGGLE_AI = "toggle_ai"
    SEND_MESSAGE = "send_message"


class GetChatsRequest(BaseModel):
    action: ManualAction = ManualAction.GET_CHATS


class GetMessagesRequest(BaseModel):
    action: ManualAction = ManualAction.GET_MESSAGES
    whatsapp_id: str = Field(..., min_length=1)


class ToggleAIRequest(BaseModel):
    action: ManualAction = ManualAction.TOGGLE_AI
    whatsapp_id: str = Field(..., min_length=1)
    ai_enabled: Optional[bool] = None
    custom_prompt: Optional[str] = None


class SendMessageRequest(BaseModel):
    action: ManualAction = ManualAction.SEND_MESSAGE
    whatsapp_id: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    phone_number_id: str = Field(..., min_length=1)


ACTION_REQUEST_MODELS = {
    ManualAction.GET_CHATS: GetChatsRequest,
    ManualAction.GET_MESSAGES: GetMessagesRequest,
    ManualAction.TOGGLE_AI: ToggleAIRequest,
    ManualAction.SEND_MESSAGE: SendMessageRequest,
}


# =============================================================================
# Auth Request Models
# =============================================================================

class AuthAction(str, Enum):
    LOGIN = "login"
    VERIFY = "verify"


class AuthRequest(BaseModel):
    """
    Body of POST /simple-auth.

    Either ``{action, username?, password?}`` or a bare
    ``{username, password}`` pair, which implies ``login``.
    """
    action: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


# =============================================================================
# Pydantic Response Models
# =============================================================================

class ChatResponse(BaseModel):
    """One row of chat_configurations as returned by get_chats."""
    whatsapp_id: str
    contact_name: Optional[str] = None
    ai_enabled: bool = False
    ai_prompt: Optional[str] = None
    last_activity: Optional[datetime] = None
    unread_count: int = 0

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    """One row of chat_messages as returned by get_messages."""
    id: int
    whatsapp_id: str
    contact_name: Optional[str] = None
    message_text: str
    message_id: str
    direction: str
    timestamp: Optional[str] = None
    phone_number_id: Optional[str] = None
    is_ai_generated: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
