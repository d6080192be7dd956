"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import json
import logging

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from listing_agents.api.handlers import handle_ingest, handle_query, turn_error_detail
from listing_agents.core.errors import ServiceUnavailableError, TurnError
from listing_agents.core.session_store import get_conversation
from listing_agents.schemas.listing import IngestResponse, ListingRecord, ListingStats
from listing_agents.schemas.query import QueryRequest, QueryResponse
from listing_agents.services.agent_service import get_router, get_store

logger = logging.getLogger(__name__)
router = APIRouter()


# --- System ---

@router.get("/", tags=["system"])
def root():
    return {"status": "Property listing agents running"}


@router.get("/health", tags=["system"])
def health():
    return {"ok": True}


# --- Listings ---

@router.get("/listings", response_model=ListingStats, tags=["listings"], summary="Listing store status")
def get_listings() -> ListingStats:
    try:
        return ListingStats(**get_store().stats())
    except ServiceUnavailableError as e:
        raise HTTPException(status_code=503, detail=e.message) from e


@router.get("/listings/{listing_id}", tags=["listings"], summary="Get one stored listing")
def get_listing(listing_id: str) -> dict:
    record = get_store().get(listing_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Listing {listing_id} not found.")
    return {"id": record.id, **record.to_json_dict(), "searchDocument": record.search_document}


@router.post(
    "/listings",
    response_model=IngestResponse,
    tags=["listings"],
    summary="Ingest listings",
    description="Accept a JSON array of listing records (camelCase or PascalCase keys); embed and upsert each with a new id.",
)
def post_listings(records: list[ListingRecord]) -> IngestResponse:
    return handle_ingest(records)


# --- Query (HTTP) ---

@router.post(
    "/query",
    response_model=QueryResponse,
    tags=["query"],
    summary="Run one conversation turn (sync)",
    description="Send a message; receive the coordinator's answer, roles visited and tools used. 409 if a turn is already running for the session, 502 on turn failure.",
)
def post_query(body: QueryRequest) -> QueryResponse:
    return handle_query(body)


def _sse(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, ensure_ascii=False)}\n\n"


def _sse_generator(question: str, session_id: str):
    """Yield Server-Sent Events for one router turn."""
    conversation = get_conversation(session_id)
    try:
        for evt in get_router().run_turn(conversation, question):
            payload = {k: v for k, v in evt.items() if k != "event"}
            yield _sse(evt.get("event", "message"), payload)
    except TurnError as e:
        logger.warning("[api:sse] turn failed kind=%s role=%s: %s", e.kind, e.role, e.message)
        yield _sse("error", turn_error_detail(e))
    except Exception as e:
        logger.exception("SSE stream failed")
        yield _sse("error", {"error": "internal", "role": None, "message": str(e)})


@router.post(
    "/query/stream",
    tags=["query"],
    summary="Run one conversation turn (SSE stream)",
    description="Stream the turn via Server-Sent Events. Events: role, answer_delta, tool, handoff, done, error.",
)
def post_query_stream(body: QueryRequest) -> StreamingResponse:
    logger.info("[api:post_query_stream] IN  question=%r session_id=%s", body.question, body.session_id)
    return StreamingResponse(
        _sse_generator(body.question, body.session_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
