"""
Vector store: embeddings (OpenAI or HF Inference API) and the nearest-neighbour index.

Responsibility: Turn texts into normalized vectors and keep (id, text, vector)
rows searchable by cosine similarity in a Milvus collection (Milvus Lite file
by default, Milvus server or Cloud when MILVUS_URI points at one).
"""

import logging
import time
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

import httpx
import openai

from listing_agents.core.config import (
    COLLECTION_NAME,
    EMBED_API_TIMEOUT,
    EMBED_BATCH_SIZE,
    EMBED_MAX_RETRIES,
    EMBED_RETRY_BACKOFF,
    HF_API_KEY,
    HF_EMBED_MODEL,
    MILVUS_TOKEN,
    MILVUS_URI,
    OPENAI_API_KEY,
    OPENAI_EMBED_MODEL,
)
from listing_agents.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

HF_API_URL_ROUTER = (
    "https://router.huggingface.co/hf-inference/models/"
    f"{HF_EMBED_MODEL}/pipeline/feature-extraction"
)

Embedder = Callable[[list[str]], list[list[float]]]


class TransientEmbeddingError(RuntimeError):
    """Embedding backend failed in a way worth retrying (model loading, 5xx, rate limit)."""


_RETRYABLE = (
    TransientEmbeddingError,
    httpx.TransportError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


def normalize(vec: list[float]) -> list[float]:
    """Scale to unit length so dot product equals cosine similarity."""
    norm = sum(x * x for x in vec) ** 0.5
    if norm == 0:
        norm = 1.0
    return [x / norm for x in vec]


@lru_cache(maxsize=1)
def _openai_client() -> openai.OpenAI:
    return openai.OpenAI(api_key=OPENAI_API_KEY, timeout=EMBED_API_TIMEOUT)


def _embed_openai(batch: list[str]) -> list[list[float]]:
    response = _openai_client().embeddings.create(model=OPENAI_EMBED_MODEL, input=batch)
    return [item.embedding for item in sorted(response.data, key=lambda d: d.index)]


def _embed_hf(batch: list[str]) -> list[list[float]]:
    headers = {
        "Authorization": f"Bearer {HF_API_KEY}",
        "Content-Type": "application/json",
    }
    payload = {"inputs": batch, "options": {"wait_for_model": True}}
    with httpx.Client(timeout=EMBED_API_TIMEOUT) as client:
        response = client.post(HF_API_URL_ROUTER, json=payload, headers=headers)
    if response.status_code == 401:
        raise ServiceUnavailableError(
            "Invalid HF API key. Check HF_API_KEY at https://huggingface.co/settings/tokens"
        )
    if response.status_code == 503 or response.status_code >= 500:
        raise TransientEmbeddingError(f"HF API {response.status_code}: {response.text[:200]}")
    if response.status_code != 200:
        raise RuntimeError(f"HF API error {response.status_code}: {response.text[:200]}")
    result = response.json()
    if isinstance(result, list) and result and isinstance(result[0], list):
        return result
    return [
        item if isinstance(item, list) else [item]
        for item in (result if isinstance(result, list) else [result])
    ]


def _with_retries(fn: Callable[[list[str]], list[list[float]]], batch: list[str]) -> list[list[float]]:
    """Call fn(batch), retrying transient failures with exponential backoff."""
    for attempt in range(EMBED_MAX_RETRIES):
        try:
            return fn(batch)
        except _RETRYABLE as e:
            if attempt == EMBED_MAX_RETRIES - 1:
                raise
            delay = EMBED_RETRY_BACKOFF * (2 ** attempt)
            logger.warning("[vector_store:embed] transient failure (attempt %d/%d), retry in %.1fs: %s",
                           attempt + 1, EMBED_MAX_RETRIES, delay, e)
            time.sleep(delay)
    return []


def embed_texts(texts: list[str], batch_size: int | None = None) -> list[list[float]]:
    """
    Batch embed texts. OpenAI when OPENAI_API_KEY is set, else Hugging Face Inference API.

    Returns one normalized vector per input text, in order.
    """
    batch_size = batch_size if batch_size is not None else EMBED_BATCH_SIZE
    if not texts:
        return []
    if OPENAI_API_KEY:
        backend = _embed_openai
    elif HF_API_KEY:
        backend = _embed_hf
    else:
        raise ServiceUnavailableError(
            "No embedding service configured: set OPENAI_API_KEY or HF_API_KEY in .env"
        )

    all_embeddings: list[list[float]] = []
    for i in range(0, len(texts), batch_size):
        batch = texts[i : i + batch_size]
        for vec in _with_retries(backend, batch):
            all_embeddings.append(normalize(vec))
    logger.info("[vector_store:embed_texts] OUT texts=%d vectors=%d", len(texts), len(all_embeddings))
    return all_embeddings


class MilvusIndex:
    """
    Milvus collection of (id, text, vector) rows. A local `.db` URI runs Milvus Lite
    in-process; an http(s) URI connects to a Milvus server or Milvus Cloud.

    Listings are read once at startup, so an existing collection is dropped when
    the index opens and recreated on the first upsert.
    """

    backend = "milvus"

    def __init__(self, uri: str = MILVUS_URI, token: str = MILVUS_TOKEN,
                 collection_name: str = COLLECTION_NAME) -> None:
        if not uri:
            raise ServiceUnavailableError("MILVUS_URI must be set in .env")
        from pymilvus import MilvusClient

        if uri.endswith(".db"):
            Path(uri).parent.mkdir(parents=True, exist_ok=True)
        self.collection_name = collection_name
        self._client = MilvusClient(uri=uri, token=token) if token else MilvusClient(uri=uri)
        logger.info("Milvus connection established uri=%s", uri)
        if self._client.has_collection(collection_name):
            self._client.drop_collection(collection_name=collection_name)
            logger.info("Collection %s dropped (listings are reloaded on startup)", collection_name)

    def _ensure_collection(self, dim: int) -> None:
        if self._client.has_collection(self.collection_name):
            return
        self._client.create_collection(
            collection_name=self.collection_name,
            dimension=dim,
            primary_field_name="id",
            id_type="string",
            max_length=64,
            vector_field_name="vector",
            metric_type="COSINE",
            auto_id=False,
            consistency_level="Strong",
        )
        logger.info("Collection %s created (dim=%s)", self.collection_name, dim)

    def upsert(self, id: str, text: str, vector: list[float]) -> None:
        self._ensure_collection(len(vector))
        self._client.upsert(
            collection_name=self.collection_name,
            data=[{"id": id, "vector": vector, "text": text}],
        )

    def search(self, vector: list[float], k: int) -> list[dict[str, Any]]:
        """Top-k rows by cosine similarity, best first: [{id, text, score}]."""
        if k <= 0 or not self._client.has_collection(self.collection_name):
            return []
        results = self._client.search(
            collection_name=self.collection_name,
            data=[vector],
            limit=k,
            output_fields=["text"],
        )
        hits = results[0] if results else []
        out = []
        for h in hits:
            entity = h.get("entity") or {}
            out.append({
                "id": h.get("id"),
                "text": entity.get("text", ""),
                "score": float(h.get("distance", 0.0)),
            })
        return out

    def count(self) -> int:
        if not self._client.has_collection(self.collection_name):
            return 0
        rows = self._client.query(
            collection_name=self.collection_name,
            filter="",
            output_fields=["count(*)"],
        )
        return int(rows[0]["count(*)"]) if rows else 0


def create_index() -> MilvusIndex:
    """Index on the configured MILVUS_URI (a Milvus Lite file by default)."""
    return MilvusIndex(uri=MILVUS_URI, token=MILVUS_TOKEN)
