"""LLM provider adapters.

Two concrete implementations of ILLMProvider (thinkr/interfaces/llm_provider.py):
    - OpenAILLMProvider  - gpt-4o-mini (also any OpenAI-compatible API)
    - OllamaLLMProvider  - local models via an Ollama server

main.py picks OpenAI when OPENAI_API_KEY is set and Ollama otherwise.
"""

from thinkr.providers.llm.ollama_provider import OllamaLLMProvider
from thinkr.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OllamaLLMProvider", "OpenAILLMProvider"]
