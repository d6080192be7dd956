"""
Agent LLM: OpenAI (primary) or Hugging Face (fallback for plain text generation).
Tool calling and streaming require OpenAI.
"""

import json
import logging
from functools import lru_cache
from typing import Any

import httpx
from openai import OpenAI

from listing_agents.core.config import (
    HF_API_KEY,
    HF_CHAT_URL,
    HF_LLM_MODEL,
    LLM_API_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_LLM_MODEL,
)
from listing_agents.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _client() -> OpenAI:
    return OpenAI(api_key=OPENAI_API_KEY, timeout=LLM_API_TIMEOUT)


def _call_openai(messages: list[dict[str, Any]], max_tokens: int) -> str:
    """Call OpenAI chat completions. Returns generated text."""
    response = _client().chat.completions.create(
        model=OPENAI_LLM_MODEL,
        messages=messages,
        max_tokens=max_tokens,
    )
    msg = response.choices[0].message if response.choices else None
    out = (getattr(msg, "content", None) or "").strip()
    logger.info("[llm:openai] OUT response_len=%d", len(out))
    return out


def _call_hf(messages: list[dict[str, Any]], max_tokens: int) -> str:
    """Call Hugging Face router chat completions. Returns generated text."""
    headers = {"Authorization": f"Bearer {HF_API_KEY}", "Content-Type": "application/json"}
    payload = {"model": HF_LLM_MODEL, "messages": messages, "max_tokens": max_tokens}
    with httpx.Client(timeout=LLM_API_TIMEOUT) as client:
        response = client.post(HF_CHAT_URL, json=payload, headers=headers)
    if response.status_code != 200:
        raise RuntimeError(f"HF LLM error {response.status_code}: {response.text[:200]}")
    choices = response.json().get("choices") or []
    if choices and isinstance(choices[0], dict):
        out = ((choices[0].get("message") or {}).get("content") or "").strip()
        logger.info("[llm:hf] OUT response_len=%d", len(out))
        return out
    return ""


def generate_text(prompt: str, system_prompt: str | None = None, max_tokens: int = 512) -> str:
    """
    Single-shot text generation. Uses OpenAI when OPENAI_API_KEY is set, else Hugging Face.
    Raises ServiceUnavailableError when neither is configured.
    """
    logger.info("[llm:generate_text] IN  prompt_len=%d max_tokens=%d", len(prompt), max_tokens)
    messages: list[dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    if OPENAI_API_KEY:
        return _call_openai(messages, max_tokens)
    if HF_API_KEY:
        return _call_hf(messages, max_tokens)
    raise ServiceUnavailableError("No LLM configured: set OPENAI_API_KEY or HF_API_KEY in .env")


class _ToolCallBuffer:
    """Reassembles streamed tool-call fragments (keyed by their index) into whole calls."""

    def __init__(self) -> None:
        self._calls: dict[int, dict[str, str]] = {}

    def __bool__(self) -> bool:
        return bool(self._calls)

    def add(self, fragment: Any) -> None:
        call = self._calls.setdefault(fragment.index or 0, {"id": "", "name": "", "arguments": ""})
        call["id"] = fragment.id or call["id"]
        if fragment.function is not None:
            call["name"] = fragment.function.name or call["name"]
            call["arguments"] += fragment.function.arguments or ""

    def calls(self) -> list[dict[str, Any]]:
        """Completed calls in index order; unparseable arguments become {}."""
        out = []
        for _, call in sorted(self._calls.items()):
            try:
                arguments = json.loads(call["arguments"] or "{}")
            except json.JSONDecodeError:
                logger.warning("[llm:tool_calls] bad arguments for %s: %r", call["name"], call["arguments"][:200])
                arguments = {}
            out.append({"id": call["id"], "name": call["name"], "arguments": arguments})
        return out


def chat_with_tools_stream(
    messages: list[dict[str, Any]],
    tools: list[dict[str, Any]],
    max_tokens: int = 512,
):
    """
    Stream an OpenAI chat completion that may call tools. Yields
    ('content_delta', str) per text chunk, then either ('tool_calls', calls, text)
    or ('content_done', text).
    """
    if not OPENAI_API_KEY:
        raise ServiceUnavailableError("Tool-calling roles require OPENAI_API_KEY")
    request: dict[str, Any] = {"model": OPENAI_LLM_MODEL, "messages": messages,
                               "max_tokens": max_tokens, "stream": True}
    if tools:
        request["tools"] = tools
    text: list[str] = []
    pending = _ToolCallBuffer()
    for chunk in _client().chat.completions.create(**request):
        delta = chunk.choices[0].delta if chunk.choices else None
        if delta is None:
            continue
        if delta.content:
            text.append(delta.content)
            yield ("content_delta", delta.content)
        for fragment in delta.tool_calls or ():
            pending.add(fragment)
    answer = "".join(text)
    if pending:
        calls = pending.calls()
        logger.info("[llm:chat_with_tools_stream] OUT tool_calls=%s", [c["name"] for c in calls])
        yield ("tool_calls", calls, answer)
        return
    logger.info("[llm:chat_with_tools_stream] OUT content_done len=%d", len(answer))
    yield ("content_done", answer)
