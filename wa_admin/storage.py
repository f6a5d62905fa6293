import logging
from datetime import datetime, timezone
from typing import Generator, List, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from wa_admin.config import get_settings

logger = logging.getLogger(__name__)

DATABASE_URL = get_settings().DATABASE_URL

# check_same_thread=False is required for SQLite to work with FastAPI's threadpool
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args,
    echo=False,
)

# Create SessionLocal class for creating database sessions
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()

REQUIRED_TABLES = ("chat_messages", "chat_configurations")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug("Initializing database")
    try:
        # Import models to register them with Base.metadata
        from wa_admin import models  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_db_health() -> bool:
    """
    Check if the database is reachable and both chat tables exist.
    """
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        existing = set(inspect(engine).get_table_names())
        missing = [name for name in REQUIRED_TABLES if name not in existing]
        if missing:
            logger.error(f"Database schema not applied, missing tables: {missing}")
            return False
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Message Repository Functions
# =============================================================================

def create_message(
    db: Session,
    whatsapp_id: str,
    message_text: str,
    message_id: str,
    direction: str,
    phone_number_id: Optional[str] = None,
    contact_name: Optional[str] = None,
    timestamp: Optional[str] = None,
    is_ai_generated: bool = False,
):
    """
    Insert one message row.

    Rows are append-only: there is no update or delete path for messages.
    Raises on any database error after rolling the session back.
    """
    from wa_admin.models import ChatMessage

    logger.info(f"Creating {direction} message: id={message_id}, whatsapp_id={whatsapp_id}")

    message = ChatMessage(
        whatsapp_id=whatsapp_id,
        contact_name=contact_name,
        message_text=message_text,
        message_id=message_id,
        direction=direction,
        timestamp=timestamp,
        phone_number_id=phone_number_id,
        is_ai_generated=is_ai_generated,
        created_at=utcnow(),
    )
    try:
        db.add(message)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(message)
    return message


def get_recent_message_texts(
    db: Session,
    whatsapp_id: str,
    limit: int = 10,
    exclude_message_id: Optional[str] = None,
) -> List[str]:
    """
    Return the texts of the ``limit`` most recent messages of a conversation,
    oldest first.
    """
    from wa_admin.models import ChatMessage

    query = db.query(ChatMessage.message_text).filter(ChatMessage.whatsapp_id == whatsapp_id)
    if exclude_message_id:
        query = query.filter(ChatMessage.message_id != exclude_message_id)

    rows = (
        query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
        .all()
    )
    return [row.message_text for row in reversed(rows)]


def get_conversation_messages(db: Session, whatsapp_id: str, limit: int = 50) -> list:
    """
    Return the ``limit`` most recent messages of a conversation in ascending
    creation order.
    """
    from wa_admin.models import ChatMessage

    rows = (
        db.query(ChatMessage)
        .filter(ChatMessage.whatsapp_id == whatsapp_id)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
        .all()
    )
    rows.reverse()
    logger.debug(f"Retrieved {len(rows)} messages for {whatsapp_id}")
    return rows


# =============================================================================
# Configuration Repository Functions
# =============================================================================

def get_configuration(db: Session, whatsapp_id: str):
    from wa_admin.models import ChatConfiguration

    return db.get(ChatConfiguration, whatsapp_id)


def upsert_configuration(db: Session, whatsapp_id: str, **fields):
    """
    Create the configuration row for ``whatsapp_id`` or update the given
    columns of the existing one. Columns not passed are left untouched.
    """
    from wa_admin.models import ChatConfiguration

    logger.debug(f"Upserting configuration for {whatsapp_id}: {sorted(fields)}")
    try:
        config = db.get(ChatConfiguration, whatsapp_id)
        if config is None:
            config = ChatConfiguration(whatsapp_id=whatsapp_id, **fields)
            db.add(config)
        else:
            for name, value in fields.items():
                setattr(config, name, value)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(config)
    return config


def record_inbound_activity(db: Session, whatsapp_id: str, contact_name: Optional[str] = None):
    """Bump unread count and last activity after an inbound message is stored."""
    config = get_configuration(db, whatsapp_id)
    unread = (config.unread_count or 0) + 1 if config is not None else 1

    fields = {"last_activity": utcnow(), "unread_count": unread}
    if contact_name:
        fields["contact_name"] = contact_name
    return upsert_configuration(db, whatsapp_id, **fields)


def list_configurations(db: Session) -> list:
    """All conversations, most recently active first."""
    from wa_admin.models import ChatConfiguration

    return (
        db.query(ChatConfiguration)
        .order_by(
            ChatConfiguration.last_activity.is_(None),
            ChatConfiguration.last_activity.desc(),
        )
        .all()
    )


def reset_unread_count(db: Session, whatsapp_id: str) -> None:
    from wa_admin.models import ChatConfiguration

    try:
        db.query(ChatConfiguration).filter(
            ChatConfiguration.whatsapp_id == whatsapp_id
        ).update({ChatConfiguration.unread_count: 0})
        db.commit()
    except Exception:
        db.rollback()
        raise
