"""
Integration tests for the HTTP API and MCP tool endpoints.

The process-wide store and router are patched with a store on the fake embedder,
so tests do not require OpenAI, Hugging Face or a Milvus server.
"""

from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from listing_agents.agent.roles import COORDINATOR, RETRIEVAL, TRANSLATOR
from listing_agents.core.errors import RoleExecutionError, ServiceUnavailableError
from listing_agents.core.session_store import clear_sessions, get_conversation
from listing_agents.main import app
from listing_agents.services.agent_service import build_router
from listing_agents.services.listing_store import NO_PROPERTIES_FOUND, ListingStore
from tests.conftest import fake_translate


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture(autouse=True)
def fresh_sessions():
    clear_sessions()
    yield
    clear_sessions()


@pytest.fixture
def rules_router(filled_store: ListingStore):
    return build_router(filled_store, mode="rules", translate=fake_translate)


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"ok": True}


# --- /query ---

def test_query_runs_a_turn(client: TestClient, rules_router) -> None:
    """POST /query returns the coordinator's answer, roles visited and tools used."""
    with patch("listing_agents.api.handlers.get_router", return_value=rules_router):
        response = client.post("/query", json={"question": "find 3-bedroom flats in X", "session_id": "s1"})
    assert response.status_code == 200
    data = response.json()
    assert data["roles"] == [COORDINATOR, RETRIEVAL, COORDINATOR]
    assert data["tools_used"] == ["search_listings"]
    assert "Title: Flat A." in data["answer"]


def test_query_history_is_per_session(client: TestClient, rules_router) -> None:
    with patch("listing_agents.api.handlers.get_router", return_value=rules_router):
        client.post("/query", json={"question": "find 3-bedroom flats in X", "session_id": "s1"})
        same = client.post("/query", json={"question": "translate that", "session_id": "s1"}).json()
        other = client.post("/query", json={"question": "translate that", "session_id": "s2"}).json()
    assert same["roles"] == [COORDINATOR, TRANSLATOR, COORDINATOR]
    assert same["answer"].startswith("[Spanish] Property listing.")
    assert "no property listings to translate" in other["answer"]


def test_query_while_turn_running_returns_409(client: TestClient, rules_router) -> None:
    conversation = get_conversation("busy")
    conversation.turn_lock.acquire()
    try:
        with patch("listing_agents.api.handlers.get_router", return_value=rules_router):
            response = client.post("/query", json={"question": "find flats", "session_id": "busy"})
    finally:
        conversation.turn_lock.release()
    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "turn_in_progress"


def test_query_role_failure_returns_502(client: TestClient) -> None:
    router = Mock()
    router.run.side_effect = RoleExecutionError(TRANSLATOR, RuntimeError("boom"))
    with patch("listing_agents.api.handlers.get_router", return_value=router):
        response = client.post("/query", json={"question": "translate that", "session_id": "s1"})
    assert response.status_code == 502
    assert response.json()["detail"] == {
        "error": "role_execution_fault", "role": TRANSLATOR, "message": "RuntimeError: boom",
    }


def test_query_service_unavailable_returns_503(client: TestClient) -> None:
    router = Mock()
    router.run.side_effect = ServiceUnavailableError("No embedding service configured")
    with patch("listing_agents.api.handlers.get_router", return_value=router):
        response = client.post("/query", json={"question": "find flats", "session_id": "s1"})
    assert response.status_code == 503


def test_query_missing_fields_returns_422(client: TestClient) -> None:
    assert client.post("/query", json={"question": "find flats"}).status_code == 422


def test_query_stream_emits_events(client: TestClient, rules_router) -> None:
    """POST /query/stream sends role, tool, handoff and done events as SSE."""
    with patch("listing_agents.api.routes.get_router", return_value=rules_router):
        response = client.post("/query/stream", json={"question": "find 3-bedroom flats in X", "session_id": "s1"})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    body = response.text
    assert body.index("event: role") < body.index("event: tool") < body.index("event: done")
    assert "event: handoff" in body
    assert "event: error" not in body


# --- /listings ---

def test_post_listings_accepts_pascal_case(client: TestClient, store: ListingStore) -> None:
    payload = [{"Title": "Flat B", "Rooms": "2", "NearbySchools": ["Oak Grammar"], "AgentName": "Ann"}]
    with patch("listing_agents.api.handlers.get_store", return_value=store):
        response = client.post("/listings", json=payload)
    assert response.status_code == 200
    data = response.json()
    assert data["ingested"] == 1
    assert store.get(data["ids"][0]).title == "Flat B"


def test_post_listings_empty_returns_400(client: TestClient, store: ListingStore) -> None:
    with patch("listing_agents.api.handlers.get_store", return_value=store):
        response = client.post("/listings", json=[])
    assert response.status_code == 400


def test_get_listings_stats(client: TestClient, filled_store: ListingStore) -> None:
    with patch("listing_agents.api.routes.get_store", return_value=filled_store):
        response = client.get("/listings")
    assert response.status_code == 200
    assert response.json() == {
        "collection_name": filled_store.index.collection_name, "total_listings": 1, "backend": "milvus",
    }


def test_get_listing_by_id(client: TestClient, store: ListingStore, flat_a) -> None:
    stored = store.upsert(flat_a)
    with patch("listing_agents.api.routes.get_store", return_value=store):
        response = client.get(f"/listings/{stored.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == stored.id
    assert data["nearbySchools"] == ["Elm Primary"]
    assert data["searchDocument"] == stored.search_document


def test_get_unknown_listing_returns_404(client: TestClient, store: ListingStore) -> None:
    with patch("listing_agents.api.routes.get_store", return_value=store):
        response = client.get("/listings/nope")
    assert response.status_code == 404


# --- MCP tools ---

def test_mcp_search_listings_empty_store_returns_sentinel(client: TestClient, store: ListingStore) -> None:
    with patch("listing_agents.mcp.server.get_store", return_value=store):
        response = client.post("/mcp/tools/search_listings", json={"question": "3-bedroom flats"})
    assert response.status_code == 200
    assert response.json() == {"result": NO_PROPERTIES_FOUND}


def test_mcp_search_listings_returns_documents(client: TestClient, filled_store: ListingStore) -> None:
    with patch("listing_agents.mcp.server.get_store", return_value=filled_store):
        response = client.post("/mcp/tools/search_listings", json={"question": "3-bedroom flats"})
    assert response.json()["result"].startswith("Property listing.\nTitle: Flat A.")


def test_mcp_search_listings_blank_question(client: TestClient) -> None:
    """Blank question is rejected with 400 without touching the store."""
    with patch("listing_agents.mcp.server.get_store") as mock_store:
        response = client.post("/mcp/tools/search_listings", json={"question": "  "})
    assert response.status_code == 400
    mock_store.assert_not_called()


def test_mcp_listing_stats(client: TestClient, filled_store: ListingStore) -> None:
    with patch("listing_agents.mcp.server.get_store", return_value=filled_store):
        response = client.post("/mcp/tools/listing_stats", json={})
    assert response.status_code == 200
    assert response.json()["total_listings"] == 1


def test_mcp_list_tools(client: TestClient) -> None:
    names = [t["name"] for t in client.get("/mcp/tools").json()["tools"]]
    assert names == ["search_listings", "listing_stats"]
