"""LLM provider adapters.

Two concrete implementations of ILLMProvider (rag_studio/interfaces/llm_provider.py):
    - OpenAILLMProvider  -- gpt-4o via the openai SDK (generic enrichment, auto-fix)
    - MistralLLMProvider -- mistral-medium via plain HTTP (sourced enrichment)
"""

from rag_studio.providers.llm.mistral_provider import MistralLLMProvider
from rag_studio.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["MistralLLMProvider", "OpenAILLMProvider"]
