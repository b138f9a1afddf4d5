import pytest

import llm


def test_strip_code_fences():
    assert llm.strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert llm.strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


def test_chat_models_from_env(monkeypatch):
    monkeypatch.setenv("OPENAI_MODEL", "gpt-4o, gpt-4o-mini ,")
    assert llm._chat_models() == ["gpt-4o", "gpt-4o-mini"]
    monkeypatch.delenv("OPENAI_MODEL")
    assert llm._chat_models() == llm.DEFAULT_CHAT_MODELS


def test_missing_key_raises(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "  ")
    assert llm.ai_enabled() is False
    with pytest.raises(ValueError):
        llm.call_llm("hello")


def test_embed_nothing_skips_client(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert llm.embed_texts([]) == []
