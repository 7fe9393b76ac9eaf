"""Tests for the document store.

Tests the Document model, DocumentRepository and session management against
in-memory SQLite.
"""

import pytest
from sqlalchemy import select

from db import session as db_session_module
from db.models import Document
from db.repositories import DocumentRepository, SqlSearchRepository


class TestDocumentRepository:
    """Test DocumentRepository operations."""

    @pytest.mark.asyncio
    async def test_add_and_get(self, db_session):
        repo = DocumentRepository(db_session)

        document = await repo.add("Lisbon guide", "Trams and tiles.", source="https://example.com")

        assert document.id is not None
        fetched = await repo.get_by_id(document.id)
        assert fetched is not None
        assert fetched.title == "Lisbon guide"
        assert fetched.source == "https://example.com"

    @pytest.mark.asyncio
    async def test_get_missing(self, db_session):
        assert await DocumentRepository(db_session).get_by_id(999) is None

    @pytest.mark.asyncio
    async def test_search_matches_title_or_content_case_insensitively(self, db_session):
        repo = DocumentRepository(db_session)
        await repo.add("Porto notes", "Port wine cellars along the Douro.")
        await repo.add("Food", "Pastel de nata is best in LISBON.")
        await repo.add("Lisbon guide", "Trams and tiles.")

        results = await repo.search("lisbon")

        # Title matches rank first
        assert [doc.title for doc in results] == ["Lisbon guide", "Food"]

    @pytest.mark.asyncio
    async def test_search_requires_every_term(self, db_session):
        repo = DocumentRepository(db_session)
        await repo.add("Lisbon trams", "Tram 28 crosses the old town.")
        await repo.add("Lisbon food", "Custard tarts.")

        results = await repo.search("lisbon tram")

        assert [doc.title for doc in results] == ["Lisbon trams"]

    @pytest.mark.asyncio
    async def test_search_limit_and_blank_query(self, db_session):
        repo = DocumentRepository(db_session)
        for i in range(4):
            await repo.add(f"Guide {i}", "travel")

        assert len(await repo.search("travel", limit=2)) == 2
        assert await repo.search("   ") == []

    @pytest.mark.asyncio
    async def test_sql_search_repository_returns_dicts(self, session_factory):
        async with session_factory() as session:
            await DocumentRepository(session).add("Long read", "x" * 500)
            await session.commit()

        results = await SqlSearchRepository(session_factory).search("long")

        assert len(results) == 1
        assert set(results[0]) == {"id", "title", "snippet", "source"}
        assert results[0]["snippet"].endswith("...")
        assert len(results[0]["snippet"]) == 203


class TestDocumentModel:
    """Test Document helpers."""

    def test_short_snippet_unchanged(self):
        assert Document(title="t", content="short").snippet() == "short"

    def test_repr(self):
        assert repr(Document(id=1, title="Guide", content="")) == "<Document(id=1, title='Guide')>"


class TestSessionManagement:
    """Test engine lifecycle helpers."""

    @pytest.mark.asyncio
    async def test_init_create_schema_and_close(self, test_settings):
        db_session_module.init_db(test_settings)
        try:
            await db_session_module.create_schema()

            sessions = db_session_module.get_db()
            session = await anext(sessions)
            await DocumentRepository(session).add("Doc", "Body")
            with pytest.raises(StopAsyncIteration):
                await anext(sessions)

            async with db_session_module.get_session_factory()() as session:
                titles = (await session.execute(select(Document.title))).scalars().all()
            assert titles == ["Doc"]
        finally:
            await db_session_module.close_db()

        with pytest.raises(RuntimeError, match="Database not initialized"):
            db_session_module.get_engine()
        with pytest.raises(RuntimeError, match="Database not initialized"):
            db_session_module.get_session_factory()
