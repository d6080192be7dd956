"""
Unit tests for the coordinator's keyword intent classifier.
"""

import pytest

from listing_agents.agent.intent import (
    OTHER,
    SEARCH,
    TRANSLATE,
    classify_intent,
    is_property_search,
    is_translation_request,
)


@pytest.mark.parametrize("text", [
    "find 3-bedroom flats in X",
    "Show me houses near Elm Primary",
    "anything for sale on Main St?",
    "2 bed apartment",
    "Which agent lists the cottage?",
])
def test_property_searches(text: str) -> None:
    assert classify_intent(text) == SEARCH


@pytest.mark.parametrize("text", [
    "translate that",
    "Can you translate the listings?",
    "put it in Spanish please",
    "traducir por favor",
])
def test_translation_requests(text: str) -> None:
    assert classify_intent(text) == TRANSLATE


def test_translate_wins_over_listing_words() -> None:
    """'translate the listings' mentions listings but asks for a translation."""
    assert is_translation_request("translate the listings")
    assert not is_property_search("translate the listings")
    assert classify_intent("translate the listings") == TRANSLATE


@pytest.mark.parametrize("text", ["hello", "thanks!", "what can you do?", ""])
def test_other(text: str) -> None:
    assert classify_intent(text) == OTHER


def test_none_is_other() -> None:
    assert classify_intent(None) == OTHER  # type: ignore[arg-type]
