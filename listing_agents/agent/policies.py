"""
Role policies: what a role does when the router activates it.

Rule-based policies are deterministic (keyword routing, tool-then-report) and
need an LLM only to translate. ModelPolicy drives any role with OpenAI tool
calling; handoffs are offered to the model as transfer_to_<Role> functions.
"""

import json
import logging
import uuid
from typing import Any, Callable, Iterator, Sequence

from listing_agents.agent.intent import OTHER, classify_intent
from listing_agents.agent.llm import chat_with_tools_stream, generate_text
from listing_agents.agent.roles import NO_LISTINGS_MESSAGE, Role
from listing_agents.agent.tools import SEARCH_LISTINGS, TOOL_SCHEMAS
from listing_agents.core.config import AGENT_MAX_TOKENS, TRANSLATION_LANGUAGE
from listing_agents.services.listing_store import NO_PROPERTIES_FOUND

logger = logging.getLogger(__name__)

HANDOFF_PREFIX = "transfer_to_"

DIRECT_ANSWER = (
    "I can search the property listings for you (for example: 'find 3-bedroom flats near Elm Primary') "
    "or translate the listings I found earlier. What would you like to do?"
)
NOTHING_TO_TRANSLATE = "There are no property listings to translate yet."


def _last_user_index(history: Sequence[dict[str, Any]]) -> int:
    for i in range(len(history) - 1, -1, -1):
        if history[i].get("role") == "user":
            return i
    return -1


def _latest(history: Sequence[dict[str, Any]], start: int, match: Callable[[dict[str, Any]], bool]) -> dict[str, Any] | None:
    for m in reversed(history[start:]):
        if match(m):
            return m
    return None


class RuleBasedCoordinator:
    """Route by intent; once a specialist has answered in this turn, present its output."""

    def __init__(self, routes: dict[str, str]) -> None:
        # intent -> target role name
        self.routes = routes

    def step(self, role: Role, history: Sequence[dict[str, Any]]) -> Iterator[tuple]:
        start = _last_user_index(history)
        answered = _latest(
            history, max(start, 0),
            lambda m: m.get("role") == "assistant" and m.get("author") != role.name and bool(m.get("content")),
        )
        if answered is not None:
            text = answered["content"]
            yield ("content_delta", text)
            yield ("content_done", text)
            return

        user_text = history[start].get("content", "") if start >= 0 else ""
        intent = classify_intent(user_text)
        target = self.routes.get(intent)
        logger.info("[policies:coordinator] intent=%s target=%s", intent, target)
        if intent != OTHER and target:
            yield ("handoff", target, "")
            return
        yield ("content_delta", DIRECT_ANSWER)
        yield ("content_done", DIRECT_ANSWER)


class RuleBasedRetrieval:
    """Call search_listings with the user's message, then report the result back."""

    def __init__(self, return_to: str) -> None:
        self.return_to = return_to

    def step(self, role: Role, history: Sequence[dict[str, Any]]) -> Iterator[tuple]:
        start = _last_user_index(history)
        result = _latest(
            history, max(start, 0),
            lambda m: m.get("role") == "tool" and m.get("author") == role.name and m.get("name") == SEARCH_LISTINGS,
        )
        if result is None:
            question = history[start].get("content", "") if start >= 0 else ""
            call = {"id": f"call_{uuid.uuid4().hex[:24]}", "name": SEARCH_LISTINGS, "arguments": {"question": question}}
            yield ("tool_calls", [call], "")
            return
        output = result.get("content") or ""
        if output.strip() == NO_PROPERTIES_FOUND or not output.strip():
            yield ("handoff", self.return_to, NO_LISTINGS_MESSAGE)
            return
        yield ("handoff", self.return_to, output)


class RuleBasedTranslator:
    """Translate the most recent retrieval output. Stateless; no tools."""

    def __init__(
        self,
        return_to: str,
        source_role: str,
        language: str = TRANSLATION_LANGUAGE,
        translate: Callable[[str, str], str] | None = None,
    ) -> None:
        self.return_to = return_to
        self.source_role = source_role
        self.language = language
        self._translate = translate or self._translate_with_llm

    def _translate_with_llm(self, text: str, language: str) -> str:
        prompt = f"Translate the following property listings into {language}. Output only the translation.\n\n{text}"
        return generate_text(prompt, system_prompt=f"You translate real-estate listings into {language}.",
                             max_tokens=AGENT_MAX_TOKENS)

    def step(self, role: Role, history: Sequence[dict[str, Any]]) -> Iterator[tuple]:
        source = _latest(
            history, 0,
            lambda m: m.get("role") == "assistant" and m.get("author") == self.source_role and bool(m.get("content")),
        )
        if source is None:
            yield ("handoff", self.return_to, NOTHING_TO_TRANSLATE)
            return
        translated = self._translate(source["content"], self.language).strip()
        yield ("handoff", self.return_to, translated)


def handoff_tool(target: str) -> dict[str, Any]:
    """Function definition that lets a model hand control to `target`."""
    return {
        "type": "function",
        "function": {
            "name": f"{HANDOFF_PREFIX}{target}",
            "description": f"Hand off the conversation to {target}.",
            "parameters": {"type": "object", "properties": {}},
        },
    }


def render_messages(role: Role, history: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Convert shared history into chat-completions messages from `role`'s point of view.
    Only the role's own tool calls keep their call/result structure; other roles'
    tool results are shown as plain assistant text.
    """
    messages: list[dict[str, Any]] = [{"role": "system", "content": role.instructions}]
    for m in history:
        kind = m.get("role")
        author = m.get("author") or ""
        content = m.get("content") or ""
        own = author == role.name
        if kind == "user":
            messages.append({"role": "user", "content": content})
        elif kind == "assistant" and m.get("tool_calls"):
            if not own:
                continue
            messages.append({
                "role": "assistant",
                "content": content or None,
                "tool_calls": [
                    {"id": tc["id"], "type": "function",
                     "function": {"name": tc["name"], "arguments": json.dumps(tc.get("arguments") or {})}}
                    for tc in m["tool_calls"]
                ],
            })
        elif kind == "tool":
            if own:
                messages.append({"role": "tool", "tool_call_id": m.get("tool_call_id", ""), "content": content})
            else:
                messages.append({"role": "assistant", "name": author,
                                 "content": f"{m.get('name', 'tool')} result:\n{content}"})
        elif kind == "assistant" and content:
            msg: dict[str, Any] = {"role": "assistant", "content": content}
            if author:
                msg["name"] = author
            messages.append(msg)
    return messages


class ModelPolicy:
    """Let an OpenAI model decide: answer, call the role's tools, or transfer_to_<Role>."""

    def __init__(self, max_tokens: int = AGENT_MAX_TOKENS) -> None:
        self.max_tokens = max_tokens

    def step(self, role: Role, history: Sequence[dict[str, Any]]) -> Iterator[tuple]:
        messages = render_messages(role, history)
        tools = [TOOL_SCHEMAS[t] for t in role.tools if t in TOOL_SCHEMAS]
        tools += [handoff_tool(t) for t in role.handoffs]
        for item in chat_with_tools_stream(messages, tools, max_tokens=self.max_tokens):
            if item[0] != "tool_calls":
                yield item
                continue
            calls, content = item[1], item[2]
            transfers = [c for c in calls if c["name"].startswith(HANDOFF_PREFIX)]
            if transfers:
                # A transfer ends the step; other calls in the same response are dropped.
                yield ("handoff", transfers[0]["name"][len(HANDOFF_PREFIX):], content)
            else:
                yield item
            return
