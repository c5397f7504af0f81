"""LLM Factory for creating chat model instances from worker settings.

Supports OpenAI directly and OpenRouter through its OpenAI-compatible endpoint.
"""

import logging
import os

from langchain_openai import ChatOpenAI

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class LLMFactory:
    """Factory for creating LLM instances based on provider configuration."""

    @staticmethod
    def create_llm(config: dict) -> ChatOpenAI:
        """Create an LLM instance from configuration.

        Args:
            config: Dict with keys:
                - llm_provider: Provider name (openai, openrouter)
                - model_identifier: Model ID (e.g., "gpt-4o-mini")
                - temperature: Temperature setting (0.0-2.0), omitted for provider default
                - api_key: Optional key; falls back to the provider's env var

        Returns:
            Configured ChatOpenAI instance

        Raises:
            ValueError: If unknown provider is specified
            KeyError: If no API key is configured for the provider
        """
        provider = config.get("llm_provider", "openai")
        model_id = config.get("model_identifier", "gpt-4o-mini")
        temperature = config.get("temperature")

        logger.info(f"Creating LLM: provider={provider}, model={model_id}, temp={temperature}")

        if provider == "openrouter":
            return LLMFactory._create_openrouter_llm(config, model_id, temperature)
        elif provider == "openai":
            return LLMFactory._create_openai_llm(config, model_id, temperature)
        else:
            raise ValueError(
                f"Unknown LLM provider: {provider}. Supported providers: openai, openrouter"
            )

    @staticmethod
    def _create_openrouter_llm(
        config: dict, model_id: str, temperature: float | None
    ) -> ChatOpenAI:
        api_key = config.get("api_key") or os.environ.get("OPEN_ROUTER_KEY")
        if not api_key:
            raise KeyError(
                "OPEN_ROUTER_KEY environment variable not set. Please set it to use OpenRouter."
            )

        kwargs = {} if temperature is None else {"temperature": temperature}
        return ChatOpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=api_key,
            model=model_id,
            default_headers={"X-Title": config.get("openrouter_app_name", "Vibe")},
            **kwargs,
        )

    @staticmethod
    def _create_openai_llm(config: dict, model_id: str, temperature: float | None) -> ChatOpenAI:
        api_key = config.get("api_key") or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise KeyError(
                "OPENAI_API_KEY environment variable not set. "
                "Please set it to use direct OpenAI connection."
            )

        kwargs = {} if temperature is None else {"temperature": temperature}
        return ChatOpenAI(api_key=api_key, model=model_id, **kwargs)
