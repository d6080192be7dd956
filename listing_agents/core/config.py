"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Listing data (JSON array written by the scraper, read once at startup)
LISTINGS_FILE: str = os.getenv("LISTINGS_FILE", "data/property_listings.json").strip()
INPUT_URLS_FILE: str = os.getenv("INPUT_URLS_FILE", "input-urls.txt").strip()

# Scraper
SCRAPE_HEADLESS: bool = os.getenv("SCRAPE_HEADLESS", "true").strip().lower() not in ("0", "false", "no")
SCRAPE_DELAY_SECONDS: float = float(os.getenv("SCRAPE_DELAY_SECONDS", "5").strip() or 5)
SCRAPE_TIMEOUT_MS: int = 30_000

# OpenAI (agent LLM + embeddings). When set, roles run on OpenAI tool-calling.
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_LLM_MODEL: str = (
    os.getenv("OPENAI_LLM_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
)
OPENAI_EMBED_MODEL: str = (
    os.getenv("OPENAI_EMBED_MODEL", "text-embedding-3-small").strip() or "text-embedding-3-small"
)

# Hugging Face (fallback embeddings / text generation)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_EMBED_MODEL: str = "sentence-transformers/all-MiniLM-L6-v2"
HF_LLM_MODEL: str = (
    os.getenv("HF_LLM_MODEL", "meta-llama/Llama-3.2-3B-Instruct").strip()
    or "meta-llama/Llama-3.2-3B-Instruct"
)
HF_CHAT_URL: str = "https://router.huggingface.co/v1/chat/completions"

# Milvus. A local .db path runs Milvus Lite in-process; set an http(s) URI (and token) for a server or Milvus Cloud.
MILVUS_URI: str = os.getenv("MILVUS_URI", "data/listings.db").strip() or "data/listings.db"
MILVUS_TOKEN: str = os.getenv("MILVUS_TOKEN", "").strip()
COLLECTION_NAME: str = "property"

# Retrieval
SEARCH_TOP_K: int = 10
EMBED_BATCH_SIZE: int = 32

# API timeouts (seconds)
EMBED_API_TIMEOUT: float = 30.0
LLM_API_TIMEOUT: float = 60.0

# Transient embedding failures: attempts and base delay for exponential backoff
EMBED_MAX_RETRIES: int = 3
EMBED_RETRY_BACKOFF: float = 1.0

# Agent roles
# "rules" = keyword routing, "llm" = OpenAI tool-calling, "auto" = llm when OPENAI_API_KEY is set
ROLE_MODE: str = os.getenv("ROLE_MODE", "auto").strip().lower() or "auto"
TRANSLATION_LANGUAGE: str = os.getenv("TRANSLATION_LANGUAGE", "Spanish").strip() or "Spanish"
MAX_HANDOFF_HOPS: int = 10
MAX_TOOL_ROUNDS: int = 5
AGENT_MAX_TOKENS: int = 1024

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
