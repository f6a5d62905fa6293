"""
Inbound webhook processing: store text messages and, for conversations with
automatic reply enabled, generate and deliver a reply.

Messages are handled one at a time. A failure on one message, including a
malformed message or change value, is logged and the batch moves on; only a
body that does not have the top-level webhook shape makes the webhook answer 500.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from wa_admin import storage
from wa_admin.ai import ReplyGenerator
from wa_admin.metrics import record_outbound_message, record_webhook_message
from wa_admin.models import DIRECTION_INCOMING, DIRECTION_OUTGOING
from wa_admin.schemas import ChangeValue, InboundMessage, WebhookPayload
from wa_admin.whatsapp import WhatsAppClient, extract_message_id

logger = logging.getLogger(__name__)

BUSINESS_ACCOUNT_OBJECT = "whatsapp_business_account"
MESSAGES_FIELD = "messages"
TEXT_TYPE = "text"
DEFAULT_CONTACT_NAME = "Usuario"
HISTORY_LIMIT = 10


@dataclass
class ProcessingSummary:
    received: int = 0
    stored: int = 0
    replied: int = 0
    ignored: int = 0
    failed: int = 0


def resolve_contact_name(value: ChangeValue, sender: str) -> str:
    for contact in value.contacts:
        if contact.wa_id == sender and contact.profile and contact.profile.name:
            return contact.profile.name
    return DEFAULT_CONTACT_NAME


def process_webhook_payload(
    db: Session,
    body: dict,
    whatsapp: WhatsAppClient,
    replies: ReplyGenerator,
) -> ProcessingSummary:
    """
    Walk ``entry[].changes[]`` of a webhook body and process every text
    message of the ``messages`` field.

    Raises:
        pydantic.ValidationError: when the body does not have the webhook shape
    """
    payload = WebhookPayload.model_validate(body)
    summary = ProcessingSummary()

    if payload.object != BUSINESS_ACCOUNT_OBJECT:
        logger.info(f"Ignoring webhook for object {payload.object!r}")
        return summary

    for entry in payload.entry:
        for change in entry.changes:
            if change.field != MESSAGES_FIELD or not change.value:
                continue
            try:
                value = ChangeValue.model_validate(change.value)
            except ValidationError as e:
                logger.error(f"Skipping malformed change value in entry {entry.id}: {e}")
                summary.failed += 1
                record_webhook_message("invalid")
                continue
            phone_number_id = value.metadata.phone_number_id if value.metadata else None

            for raw in value.messages:
                summary.received += 1
                if not isinstance(raw, dict) or raw.get("type") != TEXT_TYPE:
                    summary.ignored += 1
                    record_webhook_message("ignored")
                    continue

                try:
                    message = InboundMessage.model_validate(raw)
                except ValidationError as e:
                    logger.error(f"Skipping malformed text message {raw.get('id')}: {e}")
                    summary.failed += 1
                    record_webhook_message("invalid")
                    continue

                if not message.body:
                    summary.ignored += 1
                    record_webhook_message("ignored")
                    continue
                process_text_message(db, value, message, phone_number_id, whatsapp, replies, summary)

    logger.info(
        f"Webhook batch processed: received={summary.received}, stored={summary.stored}, "
        f"replied={summary.replied}, ignored={summary.ignored}, failed={summary.failed}"
    )
    return summary


def process_text_message(
    db: Session,
    value: ChangeValue,
    message: InboundMessage,
    phone_number_id: Optional[str],
    whatsapp: WhatsAppClient,
    replies: ReplyGenerator,
    summary: ProcessingSummary,
) -> None:
    sender = message.from_
    contact_name = resolve_contact_name(value, sender)

    try:
        storage.create_message(
            db,
            whatsapp_id=sender,
            message_text=message.body,
            message_id=message.id,
            direction=DIRECTION_INCOMING,
            phone_number_id=phone_number_id,
            contact_name=contact_name,
            timestamp=message.timestamp,
        )
    except Exception as e:
        logger.error(f"Error saving message {message.id} from {sender}: {e}")
        summary.failed += 1
        record_webhook_message("store_failed")
        return

    summary.stored += 1
    record_webhook_message("stored")

    # the message is stored; a failed activity update must not skip the reply
    try:
        storage.record_inbound_activity(db, sender, contact_name)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating conversation activity for {sender}: {e}")
        record_webhook_message("activity_failed")

    try:
        config = storage.get_configuration(db, sender)
        if config is None or not config.ai_enabled:
            return
        send_auto_reply(db, sender, message, phone_number_id, config.ai_prompt, whatsapp, replies)
    except Exception as e:
        db.rollback()
        logger.error(f"Automatic reply to {sender} failed: {e}")
        summary.failed += 1
        record_webhook_message("reply_failed")
        return

    summary.replied += 1
    record_webhook_message("auto_replied")


def send_auto_reply(
    db: Session,
    sender: str,
    message: InboundMessage,
    phone_number_id: Optional[str],
    custom_prompt: Optional[str],
    whatsapp: WhatsAppClient,
    replies: ReplyGenerator,
) -> str:
    """Generate, deliver and store the automatic reply to one inbound message."""
    history = storage.get_recent_message_texts(
        db, sender, limit=HISTORY_LIMIT, exclude_message_id=message.id
    )
    reply_text = replies.generate(message.body, history, custom_prompt)

    try:
        result = whatsapp.send_text(phone_number_id, sender, reply_text)
    except Exception:
        record_outbound_message("ai", "failed")
        raise
    record_outbound_message("ai", "sent")

    storage.create_message(
        db,
        whatsapp_id=sender,
        message_text=reply_text,
        message_id=extract_message_id(result, "ai"),
        direction=DIRECTION_OUTGOING,
        phone_number_id=phone_number_id,
        is_ai_generated=True,
    )
    storage.upsert_configuration(db, sender, last_activity=storage.utcnow(), ai_enabled=True)
    return reply_text
