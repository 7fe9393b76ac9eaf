"""
Document search tool for LLM function calling.

Runs keyword searches through a SearchRepository.
"""

from collections.abc import Mapping
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationError

from models.errors import ToolError
from tools.registry import ToolExecutor
from utils.logging import get_agent_logger

logger = get_agent_logger("search_tools")


class SearchArguments(BaseModel):
    """Validated arguments of the search_documents tool."""

    query: str = Field(min_length=1, max_length=500)
    limit: int = Field(default=5, ge=1, le=20)


class SearchRepository(Protocol):
    """Searchable document store."""

    async def search(self, query: str, limit: int = 5) -> list[dict[str, Any]]: ...


def make_search_documents(repository: SearchRepository):
    """Bind the search_documents tool function to a repository."""

    async def search_documents(arguments: Mapping[str, Any]) -> dict[str, Any]:
        try:
            args = SearchArguments.model_validate(arguments)
        except ValidationError as e:
            raise ToolError(
                f"Invalid arguments for search_documents: {e}", tool_name="search_documents"
            ) from e

        results = await repository.search(args.query, args.limit)
        logger.logger.debug(
            f"Search returned {len(results)} documents", extra={"query": args.query}
        )
        return {"query": args.query, "results": results}

    return search_documents


def register_search_tools(executor: ToolExecutor, repository: SearchRepository) -> None:
    """
    Register document search tools in the executor.

    Args:
        executor: ToolExecutor instance
        repository: Document store to search
    """
    executor.register(
        name="search_documents",
        description=(
            "Search the knowledge base for documents matching a keyword query. "
            "Returns document ids, titles, short snippets and sources."
        ),
        parameters_schema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Keywords to search for",
                },
                "limit": {
                    "type": "integer",
                    "description": "Maximum number of results (1-20)",
                },
            },
            "required": ["query"],
        },
        function=make_search_documents(repository),
    )

    logger.logger.info("Registered search tools in executor")
