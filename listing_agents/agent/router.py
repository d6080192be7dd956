"""
Handoff router: run one conversation turn across coordinator and specialist roles.

Each turn is compiled into a LangGraph graph: one node per role, conditional
edges limited to each role's allowed handoffs, END reachable only from the
entry (coordinator) role. A node activation is one hop; the hop cap is the
graph's recursion limit. Streaming events go through the custom stream writer
and never influence routing.

Events (dicts): {"event": "role", "name"}, {"event": "answer_delta", "role", "content"},
{"event": "tool", "role", "name", "arguments"}, {"event": "handoff", "source", "target"},
{"event": "done", "answer", "roles", "tools_used"}.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional, TypedDict

from langgraph.config import get_stream_writer
from langgraph.errors import GraphRecursionError
from langgraph.graph import END, StateGraph

from listing_agents.agent.roles import Role, validate_handoff_graph
from listing_agents.core.config import MAX_HANDOFF_HOPS, MAX_TOOL_ROUNDS
from listing_agents.core.errors import (
    InvalidHandoffError,
    RoleExecutionError,
    RoutingExhaustedError,
    TurnCancelledError,
    TurnError,
    TurnInProgressError,
)
from listing_agents.core.session_store import Conversation

logger = logging.getLogger(__name__)

ToolRunner = Callable[[str, dict[str, Any]], str]


class TurnState(TypedDict):
    next_role: Optional[str]
    hops: int


@dataclass
class _Turn:
    """Per-turn bookkeeping shared by the graph nodes."""

    conversation: Conversation
    cancel: Optional[threading.Event]
    active: Optional[str] = None
    roles: list[str] = field(default_factory=list)
    tools_used: list[str] = field(default_factory=list)
    answer: str = ""

    def check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise TurnCancelledError(self.active)


@dataclass
class TurnResult:
    answer: str
    roles: list[str]
    tools_used: list[str]


class HandoffRouter:
    """Routes user turns between roles; the sole writer of conversation history."""

    def __init__(
        self,
        roles: dict[str, Role],
        entry: str,
        tool_runner: ToolRunner,
        max_hops: int = MAX_HANDOFF_HOPS,
        max_tool_rounds: int = MAX_TOOL_ROUNDS,
    ) -> None:
        validate_handoff_graph(roles, entry)
        self.roles = roles
        self.entry = entry
        self.tool_runner = tool_runner
        self.max_hops = max_hops
        self.max_tool_rounds = max_tool_rounds

    # --- graph ---

    def build_graph(self, turn: _Turn):
        """One node per role; edges = allowed handoffs (+ END from the entry role)."""
        graph = StateGraph(TurnState)
        for name, role in self.roles.items():
            graph.add_node(name, self._make_node(role, turn))
        graph.set_entry_point(self.entry)
        for name, role in self.roles.items():
            path_map: dict[str, str] = {t: t for t in role.handoffs}
            if name == self.entry:
                path_map[END] = END
            graph.add_conditional_edges(name, self._route, path_map)
        return graph.compile()

    @staticmethod
    def _route(state: TurnState) -> str:
        return state.get("next_role") or END

    def _make_node(self, role: Role, turn: _Turn):
        def node(state: TurnState) -> dict:
            writer = get_stream_writer()
            previous = turn.active
            turn.active = role.name
            turn.check_cancelled()
            turn.roles.append(role.name)
            hops = (state.get("hops") or 0) + 1
            logger.info("[router:node] role=%s hop=%d from=%s", role.name, hops, previous)
            if previous != role.name:
                writer({"event": "role", "name": role.name})
            try:
                target = self._activate(role, turn, writer)
            except TurnError:
                raise
            except Exception as e:
                logger.exception("[router:node] role %s failed", role.name)
                raise RoleExecutionError(role.name, e) from e
            if target is None and role.name != self.entry:
                # Specialists never answer the user; control goes back to the coordinator.
                target = self.entry
            if target is not None:
                writer({"event": "handoff", "source": role.name, "target": target})
            return {"next_role": target, "hops": hops}

        return node

    def _activate(self, role: Role, turn: _Turn, writer) -> Optional[str]:
        """
        Run `role` until it hands off (returns target) or finishes (returns None).
        Tool calls are executed and appended, then the same role resumes.
        """
        conv = turn.conversation
        for _ in range(self.max_tool_rounds + 1):
            turn.check_cancelled()
            parts: list[str] = []
            outcome: tuple | None = None
            for item in role.policy.step(role, conv.snapshot()):
                kind = item[0]
                if kind == "content_delta":
                    parts.append(item[1])
                    writer({"event": "answer_delta", "role": role.name, "content": item[1]})
                    turn.check_cancelled()
                elif kind in ("tool_calls", "handoff", "content_done"):
                    outcome = item
                    break
            if outcome is None:
                outcome = ("content_done", "".join(parts))

            kind = outcome[0]
            if kind == "tool_calls":
                calls, content = outcome[1], outcome[2] or ""
                conv.append({"role": "assistant", "author": role.name, "content": content, "tool_calls": calls})
                for call in calls:
                    turn.check_cancelled()
                    name, args = call.get("name", ""), call.get("arguments") or {}
                    writer({"event": "tool", "role": role.name, "name": name, "arguments": args})
                    result = self.tool_runner(name, args) if name in role.tools else f"Unknown tool: {name}"
                    turn.tools_used.append(name)
                    conv.append({"role": "tool", "author": role.name, "name": name,
                                 "tool_call_id": call.get("id", ""), "content": result})
                continue

            if kind == "handoff":
                target, content = outcome[1], outcome[2] or ""
                if target not in role.handoffs:
                    raise InvalidHandoffError(role.name, target)
                conv.append({"role": "assistant", "author": role.name, "content": content, "handoff": target})
                return target

            text = outcome[1] if len(outcome) > 1 and outcome[1] is not None else "".join(parts)
            conv.append({"role": "assistant", "author": role.name, "content": text})
            turn.answer = text
            return None
        raise RoutingExhaustedError(role.name, self.max_tool_rounds, limit="tool rounds")

    # --- turns ---

    def run_turn(
        self,
        conversation: Conversation,
        user_text: str,
        cancel: Optional[threading.Event] = None,
    ) -> Iterator[dict[str, Any]]:
        """
        Process one user message and yield events. Raises a TurnError subclass on failure;
        history appended before the failure is kept.
        """
        if not user_text or not str(user_text).strip():
            raise ValueError("user_text is required")
        if not conversation.turn_lock.acquire(blocking=False):
            raise TurnInProgressError()
        try:
            turn = _Turn(conversation=conversation, cancel=cancel)
            conversation.append({"role": "user", "author": "user", "content": str(user_text).strip()})
            logger.info("[router:run_turn] START history_len=%d", len(conversation))
            graph = self.build_graph(turn)
            initial: TurnState = {"next_role": None, "hops": 0}
            try:
                for event in graph.stream(initial, config={"recursion_limit": self.max_hops},
                                          stream_mode="custom"):
                    yield event
            except GraphRecursionError as e:
                raise RoutingExhaustedError(turn.active, self.max_hops) from e
            logger.info("[router:run_turn] END roles=%s tools_used=%s answer_len=%d",
                        turn.roles, turn.tools_used, len(turn.answer))
            yield {"event": "done", "answer": turn.answer, "roles": list(turn.roles),
                   "tools_used": list(turn.tools_used)}
        finally:
            conversation.turn_lock.release()

    def run(self, conversation: Conversation, user_text: str,
            cancel: Optional[threading.Event] = None) -> TurnResult:
        """Run a turn to completion and return the final answer."""
        result = TurnResult(answer="", roles=[], tools_used=[])
        for event in self.run_turn(conversation, user_text, cancel=cancel):
            if event.get("event") == "done":
                result = TurnResult(answer=event["answer"], roles=event["roles"],
                                    tools_used=event["tools_used"])
        return result
