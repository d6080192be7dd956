"""
Tests for role policies (history rendering, the model-driven policy) and the
OpenAI chat stream reassembly, with the client patched.
"""

from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest

from listing_agents.agent import llm
from listing_agents.agent.policies import HANDOFF_PREFIX, ModelPolicy, render_messages
from listing_agents.agent.roles import COORDINATOR, RETRIEVAL, TRANSLATOR
from listing_agents.core.errors import ServiceUnavailableError
from listing_agents.core.session_store import Conversation
from listing_agents.services.agent_service import build_router, build_roles
from listing_agents.services.listing_store import ListingStore


HISTORY = (
    {"role": "user", "author": "user", "content": "find flats"},
    {"role": "assistant", "author": COORDINATOR, "content": "", "handoff": RETRIEVAL},
    {"role": "assistant", "author": RETRIEVAL, "content": "",
     "tool_calls": [{"id": "call_1", "name": "search_listings", "arguments": {"question": "find flats"}}]},
    {"role": "tool", "author": RETRIEVAL, "name": "search_listings", "tool_call_id": "call_1",
     "content": "Property listing."},
    {"role": "assistant", "author": RETRIEVAL, "content": "Property listing.", "handoff": COORDINATOR},
)


def test_render_own_tool_calls_structured() -> None:
    role = build_roles("rules")[RETRIEVAL]
    messages = render_messages(role, HISTORY)
    assert messages[0] == {"role": "system", "content": role.instructions}
    assert messages[1] == {"role": "user", "content": "find flats"}
    assert messages[2]["tool_calls"][0]["function"] == {
        "name": "search_listings", "arguments": '{"question": "find flats"}',
    }
    assert messages[3] == {"role": "tool", "tool_call_id": "call_1", "content": "Property listing."}
    assert messages[4] == {"role": "assistant", "content": "Property listing.", "name": RETRIEVAL}


def test_render_other_roles_tool_results_as_text() -> None:
    """The coordinator never sees tool-call structure it did not issue."""
    role = build_roles("rules")[COORDINATOR]
    messages = render_messages(role, HISTORY)
    assert not any("tool_calls" in m for m in messages)
    assert not any(m["role"] == "tool" for m in messages)
    assert {"role": "assistant", "name": RETRIEVAL,
            "content": "search_listings result:\nProperty listing."} in messages


def test_model_policy_offers_tools_and_transfers() -> None:
    role = build_roles("llm")[RETRIEVAL]
    with patch("listing_agents.agent.policies.chat_with_tools_stream",
               return_value=iter([("content_done", "hi")])) as mock_chat:
        out = list(ModelPolicy().step(role, HISTORY[:1]))
    assert out == [("content_done", "hi")]
    names = [t["function"]["name"] for t in mock_chat.call_args[0][1]]
    assert names == ["search_listings", f"{HANDOFF_PREFIX}{COORDINATOR}"]


def test_model_policy_transfer_becomes_handoff() -> None:
    role = build_roles("llm")[COORDINATOR]
    calls = [
        {"id": "c1", "name": f"{HANDOFF_PREFIX}{TRANSLATOR}", "arguments": {}},
        {"id": "c2", "name": "search_listings", "arguments": {}},
    ]
    with patch("listing_agents.agent.policies.chat_with_tools_stream",
               return_value=iter([("tool_calls", calls, "")])):
        out = list(ModelPolicy().step(role, HISTORY[:1]))
    assert out == [("handoff", TRANSLATOR, "")]


def test_llm_mode_turn_end_to_end(filled_store: ListingStore) -> None:
    """Coordinator transfers, retrieval searches and transfers back, coordinator answers."""
    scripted = [
        [("tool_calls", [{"id": "h1", "name": f"{HANDOFF_PREFIX}{RETRIEVAL}", "arguments": {}}], "")],
        [("tool_calls", [{"id": "s1", "name": "search_listings",
                          "arguments": {"question": "3-bedroom flats"}}], "")],
        [("tool_calls", [{"id": "h2", "name": f"{HANDOFF_PREFIX}{COORDINATOR}", "arguments": {}}], "Found one.")],
        [("content_delta", "Here is "), ("content_delta", "Flat A."), ("content_done", "Here is Flat A.")],
    ]
    with patch("listing_agents.agent.policies.chat_with_tools_stream",
               side_effect=[iter(s) for s in scripted]) as mock_chat:
        router = build_router(filled_store, mode="llm")
        conv = Conversation("llm")
        events = list(router.run_turn(conv, "find 3-bedroom flats in X"))
    done = events[-1]
    assert done["roles"] == [COORDINATOR, RETRIEVAL, COORDINATOR]
    assert done["tools_used"] == ["search_listings"]
    assert done["answer"] == "Here is Flat A."
    assert mock_chat.call_count == 4
    tool_result = next(m for m in conv.snapshot() if m["role"] == "tool")
    assert "Title: Flat A." in tool_result["content"]
    # The retrieval role saw its own tool result on its second call.
    second_call_messages = mock_chat.call_args_list[2][0][0]
    assert any(m["role"] == "tool" and "Title: Flat A." in m["content"] for m in second_call_messages)


def _chunk(content=None, tool_calls=None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content, tool_calls=tool_calls))])


def _fragment(index, id=None, name=None, arguments=None) -> SimpleNamespace:
    return SimpleNamespace(index=index, id=id, function=SimpleNamespace(name=name, arguments=arguments))


def _stream_with(chunks):
    client = Mock()
    client.chat.completions.create.return_value = iter(chunks)
    return patch.object(llm, "_client", return_value=client), patch.object(llm, "OPENAI_API_KEY", "sk-test")


def test_stream_reassembles_split_tool_calls() -> None:
    """Tool-call name and argument fragments arrive across chunks and are joined per index."""
    chunks = [
        _chunk(content="Let me look."),
        _chunk(tool_calls=[_fragment(0, id="c1", name="search_listings", arguments='{"quest')]),
        _chunk(tool_calls=[_fragment(0, arguments='ion": "flats"}'), _fragment(1, id="c2", name="transfer_to_X")]),
        SimpleNamespace(choices=[]),
    ]
    client_patch, key_patch = _stream_with(chunks)
    with client_patch, key_patch:
        out = list(llm.chat_with_tools_stream([{"role": "user", "content": "hi"}], []))
    assert out == [
        ("content_delta", "Let me look."),
        ("tool_calls", [
            {"id": "c1", "name": "search_listings", "arguments": {"question": "flats"}},
            {"id": "c2", "name": "transfer_to_X", "arguments": {}},
        ], "Let me look."),
    ]


def test_stream_without_tool_calls_ends_with_full_text() -> None:
    client_patch, key_patch = _stream_with([_chunk(content="Hel"), _chunk(content="lo")])
    with client_patch, key_patch:
        out = list(llm.chat_with_tools_stream([{"role": "user", "content": "hi"}], []))
    assert out == [("content_delta", "Hel"), ("content_delta", "lo"), ("content_done", "Hello")]


def test_stream_bad_arguments_become_empty() -> None:
    client_patch, key_patch = _stream_with([_chunk(tool_calls=[_fragment(0, id="c1", name="search_listings", arguments="{oops")])])
    with client_patch, key_patch:
        out = list(llm.chat_with_tools_stream([{"role": "user", "content": "hi"}], []))
    assert out == [("tool_calls", [{"id": "c1", "name": "search_listings", "arguments": {}}], "")]


def test_stream_requires_openai_key() -> None:
    with patch.object(llm, "OPENAI_API_KEY", ""):
        with pytest.raises(ServiceUnavailableError):
            list(llm.chat_with_tools_stream([], []))
