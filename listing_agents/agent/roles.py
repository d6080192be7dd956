"""
Role definitions: names, instructions, and the handoff graph check.

A Role is static configuration. What it does on each activation is delegated to
its policy (see agent/policies.py); which roles it may transfer control to is
listed in `handoffs`.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Protocol, Sequence

COORDINATOR = "CoordinatorAgent"
RETRIEVAL = "RetrievalAgent"
TRANSLATOR = "TranslatorAgent"

# Fixed sentence the retrieval role reports when the search tool finds nothing.
NO_LISTINGS_MESSAGE = "No property listings were found for this query."


def coordinator_instructions() -> str:
    return (
        "You are a coordinator for a property listing assistant.\n"
        f"1. For property searches, hand off to {RETRIEVAL}.\n"
        f"2. If the user asks to translate the results or says 'translate that', hand off to {TRANSLATOR}.\n"
        "3. Otherwise, or once another agent has answered, summarize and present the final output "
        "from that agent to the user. "
        f"If an agent reported '{NO_LISTINGS_MESSAGE}', repeat that sentence exactly."
    )


def retrieval_instructions() -> str:
    return (
        "You are a retrieval specialist. "
        "Use the search_listings tool for every property inquiry; never answer from your own knowledge. "
        "If the tool returns 'NO_PROPERTIES_FOUND' or an empty list, "
        f"tell the coordinator exactly this: '{NO_LISTINGS_MESSAGE}' "
        f"When you are done, hand control back to {COORDINATOR}."
    )


def translator_instructions(language: str) -> str:
    return (
        "You are a translation assistant. "
        "Look at the conversation history. If the user asks to translate the listings or 'translate that', "
        f"find the property listings provided by {RETRIEVAL} earlier in the chat and translate them into {language}. "
        f"Provide only the translated text, then hand control back to {COORDINATOR}."
    )


class RolePolicy(Protocol):
    """
    Decides one step for a role given the conversation so far. Yields:
    - ('content_delta', str) streamed text;
    - ('tool_calls', list[dict], content) tool calls to run before the role resumes;
    - ('handoff', target_role_name, content) transfer control;
    - ('content_done', full_text) final text with no further handoff.
    """

    def step(self, role: "Role", history: Sequence[dict[str, Any]]) -> Iterator[tuple]:
        ...


@dataclass(frozen=True)
class Role:
    name: str
    instructions: str
    policy: RolePolicy = field(compare=False, repr=False)
    tools: tuple[str, ...] = ()
    handoffs: tuple[str, ...] = ()


def validate_handoff_graph(roles: dict[str, Role], entry: str) -> None:
    """
    Raise ValueError unless every handoff target exists, no role hands off to
    itself, and the entry role is reachable from every role.
    """
    if entry not in roles:
        raise ValueError(f"Entry role {entry!r} is not defined")
    for name, role in roles.items():
        if name != role.name:
            raise ValueError(f"Role registered as {name!r} is named {role.name!r}")
        for target in role.handoffs:
            if target not in roles:
                raise ValueError(f"Role {name!r} hands off to unknown role {target!r}")
            if target == name:
                raise ValueError(f"Role {name!r} may not hand off to itself")
    for name in roles:
        if name == entry:
            continue
        seen = {name}
        frontier = [name]
        while frontier and entry not in seen:
            current = frontier.pop()
            for target in roles[current].handoffs:
                if target not in seen:
                    seen.add(target)
                    frontier.append(target)
        if entry not in seen:
            raise ValueError(f"Role {name!r} can never return control to {entry!r}")
