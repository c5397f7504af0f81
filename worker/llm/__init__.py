"""LLM module for centralized LLM client instantiation."""

from .factory import LLMFactory

__all__ = ["LLMFactory"]
