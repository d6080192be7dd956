"""Schemas for the query endpoint."""

from pydantic import BaseModel, Field


class QueryRequest(BaseModel):
    """Request body for POST /query and POST /query/stream. History is stored server-side by session_id."""

    question: str = Field(..., min_length=1, description="User message for the coordinator.")
    session_id: str = Field(..., min_length=1, description="Session ID; chat history is stored on the server for this session.")


class QueryResponse(BaseModel):
    """Response for POST /query."""

    answer: str = Field(..., description="Final answer from the coordinator.")
    roles: list[str] = Field(default_factory=list, description="Roles activated during the turn, in order.")
    tools_used: list[str] = Field(default_factory=list, description="Tools called during the turn (e.g. search_listings).")
