"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text

from wa_admin.storage import Base

DIRECTION_INCOMING = "incoming"
DIRECTION_OUTGOING = "outgoing"


class ChatMessage(Base):
    """
    One inbound or outbound text exchange.

    Table: chat_messages
    Unique: message_id (provider-assigned, or a local placeholder)
    """
    __tablename__ = "chat_messages"
    __table_args__ = (
        CheckConstraint(
            "direction IN ('incoming', 'outgoing')",
            name="ck_chat_messages_direction",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    whatsapp_id = Column(String, nullable=False, index=True)
    contact_name = Column(String, nullable=True)
    message_text = Column(Text, nullable=False)
    message_id = Column(String, nullable=False, unique=True, index=True)
    direction = Column(String, nullable=False)
    timestamp = Column(String, nullable=True)  # provider epoch seconds, as sent
    phone_number_id = Column(String, nullable=True)
    is_ai_generated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)


class ChatConfiguration(Base):
    """
    Per-conversation settings and inbox state.

    Table: chat_configurations
    Primary Key: whatsapp_id
    """
    __tablename__ = "chat_configurations"

    whatsapp_id = Column(String, primary_key=True)
    contact_name = Column(String, nullable=True)
    ai_enabled = Column(Boolean, nullable=False, default=False)
    ai_prompt = Column(Text, nullable=True)
    last_activity = Column(DateTime(timezone=True), nullable=True, index=True)
    unread_count = Column(Integer, nullable=False, default=0)
