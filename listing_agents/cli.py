# Run from project root: python -m listing_agents.cli  (or the `listing-agents` script)
# Interactive console: one router turn per line. EOF or Ctrl-C ends the program.

import json
import logging
import sys
from typing import TextIO

from listing_agents.agent.router import HandoffRouter
from listing_agents.core.config import LOG_LEVEL
from listing_agents.core.errors import ServiceUnavailableError, TurnError
from listing_agents.core.session_store import Conversation

logger = logging.getLogger(__name__)

GREEN = "\033[32m"
DARK_GRAY = "\033[90m"
RED = "\033[31m"
RESET = "\033[0m"
SEPARATOR = "-" * 60


def run_cli_turn(router: HandoffRouter, conversation: Conversation, line: str, out: TextIO = sys.stdout) -> bool:
    """Run one turn and print its events. Returns False when the turn failed."""
    try:
        for evt in router.run_turn(conversation, line):
            kind = evt.get("event")
            if kind == "role":
                out.write(f"\n{GREEN}{evt['name']}{RESET}\n")
            elif kind == "answer_delta":
                out.write(evt.get("content", ""))
            elif kind == "tool":
                args = json.dumps(evt.get("arguments") or {}, ensure_ascii=False)
                out.write(f"\n{DARK_GRAY}Call '{evt['name']}' with arguments: {args}{RESET}\n")
            elif kind == "done":
                out.write(f"\n{SEPARATOR}\n")
            out.flush()
    except TurnError as e:
        out.write(f"\n{RED}Error in agent {e.role or 'router'}: {e.message}{RESET}\n")
        return False
    except ServiceUnavailableError as e:
        out.write(f"\n{RED}Service unavailable: {e.message}{RESET}\n")
        return False
    return True


def chat_loop(router: HandoffRouter, conversation: Conversation,
              stdin: TextIO = sys.stdin, out: TextIO = sys.stdout) -> None:
    """Read lines until EOF; blank lines are ignored."""
    while True:
        out.write("> ")
        out.flush()
        try:
            line = stdin.readline()
        except KeyboardInterrupt:
            break
        if not line:
            break
        if not line.strip():
            continue
        run_cli_turn(router, conversation, line.strip(), out)


def main() -> None:
    logging.basicConfig(level=LOG_LEVEL)
    from listing_agents.services.agent_service import get_router

    try:
        router = get_router()
    except (ServiceUnavailableError, ValueError) as e:
        print(f"Failed to start: {e}", file=sys.stderr)
        return
    try:
        chat_loop(router, Conversation("cli"))
    except KeyboardInterrupt:
        pass
    print()


if __name__ == "__main__":
    main()
