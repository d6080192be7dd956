"""
Agent service: wire the listing store, roles, and handoff router together.

Responsibility: Build the coordinator/retrieval/translator team for the
configured role mode and hold the process-wide store and router. Called by the
API and the CLI; no HTTP here.
"""

import logging
from typing import Callable, Optional

from listing_agents.agent.policies import (
    ModelPolicy,
    RuleBasedCoordinator,
    RuleBasedRetrieval,
    RuleBasedTranslator,
)
from listing_agents.agent.intent import SEARCH, TRANSLATE
from listing_agents.agent.roles import (
    COORDINATOR,
    RETRIEVAL,
    TRANSLATOR,
    Role,
    coordinator_instructions,
    retrieval_instructions,
    translator_instructions,
)
from listing_agents.agent.router import HandoffRouter
from listing_agents.agent.tools import SEARCH_LISTINGS, ToolExecutor
from listing_agents.core.config import (
    LISTINGS_FILE,
    MAX_HANDOFF_HOPS,
    OPENAI_API_KEY,
    ROLE_MODE,
    TRANSLATION_LANGUAGE,
)
from listing_agents.ingest.loader import load_listings
from listing_agents.services.listing_store import ListingStore

logger = logging.getLogger(__name__)

_store: Optional[ListingStore] = None
_router: Optional[HandoffRouter] = None


def resolve_role_mode(mode: str = ROLE_MODE) -> str:
    """'auto' becomes 'llm' when OPENAI_API_KEY is set, else 'rules'."""
    mode = (mode or "auto").strip().lower()
    if mode == "auto":
        return "llm" if OPENAI_API_KEY else "rules"
    if mode not in ("llm", "rules"):
        raise ValueError(f"Unknown ROLE_MODE {mode!r} (expected auto, llm or rules)")
    return mode


def build_roles(
    mode: str = ROLE_MODE,
    language: str = TRANSLATION_LANGUAGE,
    translate: Callable[[str, str], str] | None = None,
) -> dict[str, Role]:
    """Coordinator hands off to retrieval and translator; both hand back to the coordinator."""
    mode = resolve_role_mode(mode)
    if mode == "llm":
        model = ModelPolicy()
        coordinator_policy, retrieval_policy, translator_policy = model, model, model
    else:
        coordinator_policy = RuleBasedCoordinator({SEARCH: RETRIEVAL, TRANSLATE: TRANSLATOR})
        retrieval_policy = RuleBasedRetrieval(return_to=COORDINATOR)
        translator_policy = RuleBasedTranslator(
            return_to=COORDINATOR, source_role=RETRIEVAL, language=language, translate=translate,
        )
    roles = [
        Role(COORDINATOR, coordinator_instructions(), coordinator_policy,
             handoffs=(RETRIEVAL, TRANSLATOR)),
        Role(RETRIEVAL, retrieval_instructions(), retrieval_policy,
             tools=(SEARCH_LISTINGS,), handoffs=(COORDINATOR,)),
        Role(TRANSLATOR, translator_instructions(language), translator_policy,
             handoffs=(COORDINATOR,)),
    ]
    logger.info("[agent_service:build_roles] mode=%s roles=%s", mode, [r.name for r in roles])
    return {r.name: r for r in roles}


def build_router(
    store: ListingStore,
    mode: str = ROLE_MODE,
    translate: Callable[[str, str], str] | None = None,
    max_hops: int = MAX_HANDOFF_HOPS,
) -> HandoffRouter:
    return HandoffRouter(
        build_roles(mode, translate=translate),
        entry=COORDINATOR,
        tool_runner=ToolExecutor(store),
        max_hops=max_hops,
    )


def load_store(path: str = LISTINGS_FILE, store: ListingStore | None = None) -> ListingStore:
    """Create a store on the configured index and upsert every listing in path."""
    store = store if store is not None else ListingStore()
    records = load_listings(path)
    if records:
        store.upsert_many(records)
    logger.info("[agent_service:load_store] path=%s listings=%d", path, store.count())
    return store


def get_store() -> ListingStore:
    """Process-wide listing store, loaded from LISTINGS_FILE on first use."""
    global _store
    if _store is None:
        _store = load_store()
    return _store


def get_router() -> HandoffRouter:
    """Process-wide router over get_store()."""
    global _router
    if _router is None:
        _router = build_router(get_store())
    return _router

