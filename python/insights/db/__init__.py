"""Database module for Insights.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from insights.db.engine import create_db_engine, get_engine
from insights.db.models import (
    Base,
    ChatMessage,
    Document,
    Note,
    Notebook,
    Profile,
    ProfileRole,
    SecurityAttempt,
    Source,
    SourceType,
    StorageBucket,
    StorageObject,
)
from insights.db.session import get_db, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    # Base
    "Base",
    # Enums
    "ProfileRole",
    "SourceType",
    "StorageBucket",
    # Models
    "Profile",
    "Notebook",
    "Source",
    "Note",
    "ChatMessage",
    "Document",
    "StorageObject",
    "SecurityAttempt",
]
