"""
Thin OpenAI wrappers: one chat completion call and one embeddings call.
Callers treat both as opaque services and pass them around as callables.
"""
from __future__ import annotations

import logging
import os
import re
import time
from typing import Callable, List, Sequence

logger = logging.getLogger(__name__)

LLMCall = Callable[[str], str]
Embedder = Callable[[Sequence[str]], List[List[float]]]

DEFAULT_CHAT_MODELS = ["gpt-4o-mini", "gpt-4.1-mini"]
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
MAX_TOKENS = 2048


def ai_enabled() -> bool:
    key = os.getenv("OPENAI_API_KEY", "")
    return bool(key and key.strip())


def _client():
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key or not str(api_key).strip():
        raise ValueError("OPENAI_API_KEY not configured")
    from openai import OpenAI

    return OpenAI(api_key=api_key)


def _chat_models() -> List[str]:
    configured = (os.environ.get("OPENAI_MODEL") or "").strip()
    return [m.strip() for m in configured.split(",") if m.strip()] if configured else DEFAULT_CHAT_MODELS


def strip_code_fences(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```"):
        raw = re.sub(r"^```\w*\n?", "", raw)
        raw = re.sub(r"\n?```\s*$", "", raw)
    return raw


def call_llm(prompt: str) -> str:
    """Send a single user prompt; tries each configured model in order."""
    client = _client()
    last_error: Exception | None = None
    for model in _chat_models():
        try:
            t0 = time.perf_counter()
            response = client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=MAX_TOKENS,
                temperature=0.1,
            )
            logger.info("[llm] chat duration=%.2fs model=%s", time.perf_counter() - t0, model)
            return (response.choices[0].message.content or "").strip()
        except Exception as e:
            last_error = e
            logger.warning("[llm] model failed model=%s error=%s", model, e)
    if last_error is not None:
        raise last_error
    raise RuntimeError("No OpenAI model candidates configured")


def embed_texts(texts: Sequence[str]) -> List[List[float]]:
    if not texts:
        return []
    client = _client()
    model = (os.environ.get("OPENAI_EMBEDDING_MODEL") or "").strip() or DEFAULT_EMBEDDING_MODEL
    t0 = time.perf_counter()
    response = client.embeddings.create(model=model, input=list(texts))
    logger.info("[llm] embeddings duration=%.2fs model=%s n=%d", time.perf_counter() - t0, model, len(texts))
    return [item.embedding for item in response.data]
