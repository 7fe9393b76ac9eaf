"""Repository pattern for database access.

Provides clean abstraction layer between business logic and database operations.
Follows async patterns for FastAPI integration.
"""

from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from db.models import Document


class DocumentRepository:
    """Repository for document-related database operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def add(self, title: str, content: str, source: str | None = None) -> Document:
        """Create a new document.

        Args:
            title: Document title
            content: Full document text
            source: Optional origin (URL, file path)

        Returns:
            Newly created Document instance
        """
        document = Document(title=title, content=content, source=source)
        self.session.add(document)
        await self.session.flush()  # Get ID without committing transaction
        return document

    async def get_by_id(self, document_id: int) -> Document | None:
        """Get document by ID.

        Args:
            document_id: Document ID

        Returns:
            Document if found, None otherwise
        """
        return await self.session.get(Document, document_id)

    async def search(self, query: str, limit: int = 5) -> list[Document]:
        """Case-insensitive keyword search over titles and content.

        Every whitespace-separated term must appear in the title or the content.

        Args:
            query: Search keywords
            limit: Maximum number of documents to return

        Returns:
            Matching documents, title matches first, then newest first
        """
        terms = [term for term in query.split() if term]
        if not terms:
            return []

        stmt = select(Document)
        for term in terms:
            pattern = f"%{term}%"
            stmt = stmt.where(or_(Document.title.ilike(pattern), Document.content.ilike(pattern)))

        stmt = stmt.order_by(
            Document.title.ilike(f"%{terms[0]}%").desc(),
            Document.id.desc(),
        ).limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class SqlSearchRepository:
    """SearchRepository backed by the documents table.

    Opens a short-lived session per search so it can be shared across requests.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def search(self, query: str, limit: int = 5) -> list[dict[str, Any]]:
        async with self._session_factory() as session:
            documents = await DocumentRepository(session).search(query, limit)
            return [
                {
                    "id": document.id,
                    "title": document.title,
                    "snippet": document.snippet(),
                    "source": document.source,
                }
                for document in documents
            ]
