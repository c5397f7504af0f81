"""Tests for the LLM factory."""

import pytest

from worker.llm import LLMFactory
from worker.llm.factory import OPENROUTER_BASE_URL


def test_openai_model_uses_explicit_key():
    llm = LLMFactory.create_llm(
        {"llm_provider": "openai", "model_identifier": "gpt-4o-mini", "api_key": "sk-test"}
    )

    assert llm.model_name == "gpt-4o-mini"
    assert llm.openai_api_key.get_secret_value() == "sk-test"


def test_temperature_is_passed_through():
    llm = LLMFactory.create_llm({"api_key": "sk-test", "temperature": 0.1})
    assert llm.temperature == 0.1  # noqa: PLR2004


def test_openai_key_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")

    llm = LLMFactory.create_llm({"llm_provider": "openai"})

    assert llm.openai_api_key.get_secret_value() == "sk-env"


def test_missing_openai_key_raises(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(KeyError, match="OPENAI_API_KEY"):
        LLMFactory.create_llm({"llm_provider": "openai"})


def test_openrouter_uses_compatible_endpoint(monkeypatch):
    monkeypatch.setenv("OPEN_ROUTER_KEY", "or-key")

    llm = LLMFactory.create_llm(
        {"llm_provider": "openrouter", "model_identifier": "openai/gpt-4o-mini"}
    )

    assert llm.openai_api_base == OPENROUTER_BASE_URL
    assert llm.model_name == "openai/gpt-4o-mini"


def test_unknown_provider_raises():
    with pytest.raises(ValueError, match="Unknown LLM provider"):
        LLMFactory.create_llm({"llm_provider": "mystery", "api_key": "x"})
