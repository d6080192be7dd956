"""
API handlers: call services, map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Marshalling and exception-to-HTTP mapping.
Lives in the API layer so services stay free of FastAPI/HTTP types.
"""

import logging

from fastapi import HTTPException

from listing_agents.core.errors import ServiceUnavailableError, TurnError, TurnInProgressError
from listing_agents.core.session_store import get_conversation
from listing_agents.schemas.listing import IngestResponse, ListingRecord
from listing_agents.schemas.query import QueryRequest, QueryResponse
from listing_agents.services.agent_service import get_router, get_store

logger = logging.getLogger(__name__)


def turn_error_detail(e: TurnError) -> dict:
    return {"error": e.kind, "role": e.role, "message": e.message}


def handle_ingest(records: list[ListingRecord]) -> IngestResponse:
    """Upsert listings; 400 on empty input, 503 when embeddings are unavailable."""
    if not records:
        raise HTTPException(status_code=400, detail="At least one listing is required.")
    try:
        stored = get_store().upsert_many(records)
    except ServiceUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    return IngestResponse(ingested=len(stored), ids=[r.id for r in stored])


def handle_query(body: QueryRequest) -> QueryResponse:
    """Run one router turn for the session; map turn failures to 409/502."""
    logger.info("[api:handle_query] IN  question=%r session_id=%s", body.question, body.session_id)
    conversation = get_conversation(body.session_id)
    try:
        result = get_router().run(conversation, body.question)
    except TurnInProgressError as e:
        raise HTTPException(status_code=409, detail=turn_error_detail(e)) from e
    except TurnError as e:
        logger.warning("[api:handle_query] turn failed kind=%s role=%s: %s", e.kind, e.role, e.message)
        raise HTTPException(status_code=502, detail=turn_error_detail(e)) from e
    except ServiceUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.info("[api:handle_query] OUT roles=%s tools_used=%s answer_len=%d",
                result.roles, result.tools_used, len(result.answer))
    return QueryResponse(answer=result.answer, roles=result.roles, tools_used=result.tools_used)
