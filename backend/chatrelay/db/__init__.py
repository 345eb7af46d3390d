"""Database models, engine, and session management."""

from chatrelay.db.base import Base, TimestampMixin
from chatrelay.db.engine import create_db_engine, init_db, verify_database_connection
from chatrelay.db.models import Conversation, Message, Setting
from chatrelay.db.session import make_session_factory

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Engine
    "create_db_engine",
    "init_db",
    "verify_database_connection",
    # Session
    "make_session_factory",
    # Models
    "Conversation",
    "Message",
    "Setting",
]
