"""
SQLAlchemy ORM models for the LLM gateway.

- Documents searched by the search_documents tool
"""

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class Document(Base, TimestampMixin):
    """
    Knowledge-base document available to the agent through keyword search.
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        doc="Document ID",
    )

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Document title",
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="Full document text",
    )

    source: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
        doc="Where the document came from (URL, file path, ...)",
    )

    __table_args__ = (Index("ix_documents_title", "title"),)

    def snippet(self, length: int = 200) -> str:
        """Leading excerpt of the content."""
        if len(self.content) <= length:
            return self.content
        return self.content[:length].rstrip() + "..."

    def __repr__(self) -> str:
        return f"<Document(id={self.id}, title={self.title!r})>"
