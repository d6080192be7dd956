"""
Application errors.

ServiceUnavailableError covers misconfigured or unreachable dependencies (vector
store, embeddings, LLM) so the API can return 503 with a user-facing message.

TurnError and its subclasses are turn-scoped router failures. They always carry
the name of the role that was active, never corrupt committed history, and never
stop the caller from running the next turn.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. vector store, embeddings API) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TurnError(Exception):
    """Base class for failures that abort a single conversation turn."""

    kind = "turn_failed"

    def __init__(self, role: str | None, message: str) -> None:
        self.role = role
        self.message = message
        super().__init__(message)


class RoutingExhaustedError(TurnError):
    """Hop (or tool-round) cap reached before the coordinator produced a final answer."""

    kind = "routing_exhausted"

    def __init__(self, role: str | None, count: int, limit: str = "hops") -> None:
        self.count = count
        self.limit = limit
        super().__init__(role, f"Routing exhausted after {count} {limit} without a final answer")


class RoleExecutionError(TurnError):
    """A role's invocation failed (model call, tool call, upstream service)."""

    kind = "role_execution_fault"

    def __init__(self, role: str, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(role, f"{type(cause).__name__}: {cause}")


class InvalidHandoffError(TurnError):
    """A role tried to hand off to a role outside its allowed targets."""

    kind = "invalid_handoff_target"

    def __init__(self, role: str, target: str) -> None:
        self.target = target
        super().__init__(role, f"Role {role!r} may not hand off to {target!r}")


class TurnCancelledError(TurnError):
    """The turn was cancelled from outside before it completed."""

    kind = "turn_cancelled"

    def __init__(self, role: str | None) -> None:
        super().__init__(role, "Turn cancelled")


class TurnInProgressError(TurnError):
    """A new user message arrived while the conversation was still processing a turn."""

    kind = "turn_in_progress"

    def __init__(self) -> None:
        super().__init__(None, "Another turn is still running for this conversation")
