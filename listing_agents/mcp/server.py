"""
Minimal MCP-style tool server: exposes listing search and store introspection
as a standardized tool interface for external agents.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from listing_agents.agent.tools import search_listings
from listing_agents.services.agent_service import get_store

logger = logging.getLogger(__name__)

# MCP tool schema for discovery / documentation
tools = [
    {
        "name": "search_listings",
        "description": "Search property listings using semantic retrieval",
        "input_schema": {"question": "string"},
    },
    {
        "name": "listing_stats",
        "description": "Listing store status: total listings, backend, collection name",
        "input_schema": {},
    },
]

mcp_router = APIRouter(tags=["mcp"])


class SearchListingsRequest(BaseModel):
    """Request body for MCP tool search_listings."""
    question: str = ""


@mcp_router.get("/tools", summary="MCP tool discovery")
def mcp_list_tools() -> dict[str, list[dict[str, Any]]]:
    return {"tools": tools}


@mcp_router.post(
    "/tools/search_listings",
    summary="MCP tool: search_listings",
    description="Same output as the retrieval role's tool: listing texts joined by newlines, or NO_PROPERTIES_FOUND. 400 for a blank question.",
)
def mcp_search_listings(body: SearchListingsRequest) -> dict[str, str]:
    logger.info("MCP tool called: search_listings")
    question = (body.question or "").strip()
    if not question:
        raise HTTPException(status_code=400, detail="question is required.")
    return {"result": search_listings(get_store(), question)}


@mcp_router.post(
    "/tools/listing_stats",
    summary="MCP tool: listing_stats",
    description="Listing store status (system observability).",
)
def mcp_listing_stats() -> dict[str, Any]:
    logger.info("MCP tool called: listing_stats")
    return get_store().stats()
