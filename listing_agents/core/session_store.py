"""
In-memory conversation store. Keyed by session_id; history is not sent from the client.

A Conversation is an append-only message log shared by every role. Only the
router appends to it; roles receive snapshots.
"""

import logging
import threading
from typing import Any

logger = logging.getLogger(__name__)


class Conversation:
    """Append-only message log plus the lock that keeps turns sequential."""

    def __init__(self, session_id: str = "") -> None:
        self.session_id = session_id
        self._messages: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self.turn_lock = threading.Lock()

    def append(self, message: dict[str, Any]) -> None:
        """Append one message. Messages are never edited or removed afterwards."""
        msg = dict(message)
        msg.setdefault("content", "")
        with self._lock:
            self._messages.append(msg)
        logger.info(
            "[session_store:append] session_id=%s role=%s author=%s content_len=%d",
            self.session_id[:16], msg.get("role"), msg.get("author"), len(msg.get("content") or ""),
        )

    def snapshot(self) -> tuple[dict[str, Any], ...]:
        """Return the current history (copy so callers cannot mutate the log)."""
        with self._lock:
            return tuple(dict(m) for m in self._messages)

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)


# session_id -> Conversation
_sessions: dict[str, Conversation] = {}
_lock = threading.Lock()


def get_conversation(session_id: str) -> Conversation:
    """Return the conversation for session_id, creating it on first use."""
    if not session_id or not isinstance(session_id, str):
        raise ValueError("session_id is required")
    with _lock:
        conv = _sessions.get(session_id)
        if conv is None:
            conv = Conversation(session_id)
            _sessions[session_id] = conv
            logger.info("[session_store:get_conversation] created session_id=%s", session_id[:16])
    return conv


def clear_sessions() -> None:
    """Drop every conversation."""
    with _lock:
        _sessions.clear()
