"""
Agent tools: definitions and execution for tool-calling roles.

Tools: search_listings (vector search over the listing store).
"""

import logging
from typing import Any

from listing_agents.core.config import SEARCH_TOP_K
from listing_agents.services.listing_store import NO_PROPERTIES_FOUND, ListingStore

logger = logging.getLogger(__name__)

SEARCH_LISTINGS = "search_listings"

# OpenAI function-calling format, keyed by tool name
TOOL_SCHEMAS: dict[str, dict[str, Any]] = {
    SEARCH_LISTINGS: {
        "type": "function",
        "function": {
            "name": SEARCH_LISTINGS,
            "description": (
                "Search the property listing database using semantic retrieval. Use this for any "
                "property inquiry (rooms, location, status, schools, agents). Returns listing texts "
                f"separated by newlines, or {NO_PROPERTIES_FOUND} when nothing matches."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "question": {
                        "type": "string",
                        "description": "The user's property question or search phrase",
                    }
                },
                "required": ["question"],
            },
        },
    },
}


def search_listings(store: ListingStore, question: str, k: int = SEARCH_TOP_K) -> str:
    """Run a listing search and render it for a role: joined documents or the empty-result sentinel."""
    docs = store.search(question, k)
    if not docs:
        return NO_PROPERTIES_FOUND
    return "\n".join(docs)


class ToolExecutor:
    """Executes tool calls by name against one listing store."""

    def __init__(self, store: ListingStore) -> None:
        self.store = store

    def schemas(self, names: tuple[str, ...]) -> list[dict[str, Any]]:
        return [TOOL_SCHEMAS[n] for n in names if n in TOOL_SCHEMAS]

    def __call__(self, name: str, arguments: dict[str, Any]) -> str:
        """
        Execute a tool by name with the given arguments. Returns a string result for the role.
        """
        args = arguments or {}
        logger.info("[tools] execute_tool name=%r arguments=%r", name, args)

        if name == SEARCH_LISTINGS:
            question = (args.get("question") or args.get("query") or "").strip()
            if not question:
                return "Error: question is required."
            return search_listings(self.store, question)

        return f"Unknown tool: {name}"
