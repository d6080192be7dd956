"""
Shared fixtures. A bag-of-words hashing embedder stands in for the embedding API,
and listings are indexed in a Milvus Lite file under pytest's tmp dir, so tests
never touch OpenAI, Hugging Face, or a Milvus server.
"""

import re
import uuid
import zlib

import pytest

from listing_agents.schemas.listing import ListingRecord
from listing_agents.services.listing_store import ListingStore
from listing_agents.services.vector_store import MilvusIndex

DIM = 1024


def fake_embed(texts: list[str]) -> list[list[float]]:
    vectors = []
    for text in texts:
        vec = [0.0] * DIM
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            vec[zlib.crc32(word.encode()) % DIM] += 1.0
        vectors.append(vec)
    return vectors


def fake_translate(text: str, language: str) -> str:
    return f"[{language}] {text}"


@pytest.fixture
def flat_a() -> ListingRecord:
    return ListingRecord.model_validate({
        "title": "Flat A",
        "rooms": "3",
        "status": "For Sale",
        "description": "Bright flat",
        "nearbySchools": ["Elm Primary"],
        "agentName": "Jane",
        "address": "1 Main St",
    })


@pytest.fixture
def cottage() -> ListingRecord:
    return ListingRecord.model_validate({
        "title": "Stone Cottage",
        "rooms": "2",
        "status": "Under Offer",
        "description": "Quiet cottage with a large garden",
        "nearbySchools": ["Oak Grammar", "Hill College"],
        "agentName": "Tom",
        "address": "9 River Rd",
    })


@pytest.fixture(scope="session")
def milvus_uri(tmp_path_factory) -> str:
    return str(tmp_path_factory.mktemp("milvus") / "listings.db")


@pytest.fixture
def make_index(milvus_uri: str):
    """Factory for indexes on fresh collections in the shared Milvus Lite file."""

    def make(collection_name: str | None = None) -> MilvusIndex:
        return MilvusIndex(uri=milvus_uri, token="", collection_name=collection_name or f"t_{uuid.uuid4().hex}")

    return make


@pytest.fixture
def store(make_index) -> ListingStore:
    return ListingStore(index=make_index(), embedder=fake_embed)


@pytest.fixture
def filled_store(store: ListingStore, flat_a: ListingRecord) -> ListingStore:
    store.upsert(flat_a)
    return store
