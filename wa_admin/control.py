"""
Operator actions behind POST /manual-override.

Each ManualAction has one request model (schemas.ACTION_REQUEST_MODELS) and
one handler here; ``dispatch_action`` validates the body against the model of
its action and calls the handler.
"""

import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from wa_admin import storage
from wa_admin.metrics import record_outbound_message
from wa_admin.models import DIRECTION_OUTGOING
from wa_admin.schemas import (
    ACTION_REQUEST_MODELS,
    ChatResponse,
    GetChatsRequest,
    GetMessagesRequest,
    ManualAction,
    MessageResponse,
    SendMessageRequest,
    ToggleAIRequest,
)
from wa_admin.whatsapp import WhatsAppClient, extract_message_id

logger = logging.getLogger(__name__)


class ActionError(Exception):
    """A request the operator endpoint answers with ``{success: false, error}``."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def get_chats(db: Session, request: GetChatsRequest, whatsapp: WhatsAppClient) -> dict:
    chats = storage.list_configurations(db)
    return {
        "success": True,
        "chats": [ChatResponse.model_validate(chat).model_dump(mode="json") for chat in chats],
    }


def get_messages(db: Session, request: GetMessagesRequest, whatsapp: WhatsAppClient) -> dict:
    messages = storage.get_conversation_messages(db, request.whatsapp_id, limit=50)
    storage.reset_unread_count(db, request.whatsapp_id)
    return {
        "success": True,
        "messages": [MessageResponse.model_validate(msg).model_dump(mode="json") for msg in messages],
    }


def toggle_ai(db: Session, request: ToggleAIRequest, whatsapp: WhatsAppClient) -> dict:
    storage.upsert_configuration(
        db,
        request.whatsapp_id,
        ai_enabled=bool(request.ai_enabled),
        ai_prompt=request.custom_prompt or None,
        last_activity=storage.utcnow(),
    )
    state = "activada" if request.ai_enabled else "desactivada"
    logger.info(f"Automatic reply {state} for {request.whatsapp_id}")
    return {"success": True, "message": f"IA {state} para {request.whatsapp_id}"}


def send_message(db: Session, request: SendMessageRequest, whatsapp: WhatsAppClient) -> dict:
    try:
        result = whatsapp.send_text(request.phone_number_id, request.whatsapp_id, request.message)
    except Exception:
        record_outbound_message("manual", "failed")
        raise
    record_outbound_message("manual", "sent")

    provider_id = extract_message_id(result, "manual")
    try:
        storage.create_message(
            db,
            whatsapp_id=request.whatsapp_id,
            message_text=request.message,
            message_id=provider_id,
            direction=DIRECTION_OUTGOING,
            phone_number_id=request.phone_number_id,
            is_ai_generated=False,
        )
        storage.upsert_configuration(db, request.whatsapp_id, last_activity=storage.utcnow())
    except Exception as e:
        # the message already left; report the send as successful
        logger.error(f"Error saving manual message {provider_id}: {e}")

    return {
        "success": True,
        "whatsapp_message_id": provider_id,
        "message": "Mensaje enviado exitosamente",
    }


ACTION_HANDLERS = {
    ManualAction.GET_CHATS: get_chats,
    ManualAction.GET_MESSAGES: get_messages,
    ManualAction.TOGGLE_AI: toggle_ai,
    ManualAction.SEND_MESSAGE: send_message,
}


def _required_fields(error: ValidationError) -> str:
    fields = [str(err["loc"][0]) for err in error.errors() if err.get("loc")]
    return ", ".join(dict.fromkeys(fields))


def dispatch_action(db: Session, body: dict, whatsapp: WhatsAppClient) -> dict:
    """
    Run the action named by ``body["action"]``.

    Raises:
        ActionError: 400 for an unknown action or missing/invalid fields
    """
    try:
        action = ManualAction(body.get("action"))
    except ValueError:
        raise ActionError(400, "Invalid action")

    try:
        request = ACTION_REQUEST_MODELS[action].model_validate(body)
    except ValidationError as e:
        raise ActionError(400, f"{action.value}: {_required_fields(e)} required")

    logger.info(f"Manual action: {action.value}")
    return ACTION_HANDLERS[action](db, request, whatsapp)
