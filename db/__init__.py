"""
Database package for the LLM gateway.

Provides async SQLAlchemy models, session management, and repositories
for the document store behind the search tool.
"""

from db.base import Base
from db.models import Document
from db.repositories import DocumentRepository, SqlSearchRepository
from db.session import close_db, create_schema, get_db, get_session_factory, init_db

__all__ = [
    "Base",
    "Document",
    "DocumentRepository",
    "SqlSearchRepository",
    "close_db",
    "create_schema",
    "get_db",
    "get_session_factory",
    "init_db",
]
