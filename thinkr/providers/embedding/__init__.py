"""Embedding provider adapters (OpenAI-compatible and Nomic via Ollama)."""

from thinkr.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from thinkr.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["NomicEmbeddingProvider", "OpenAIEmbeddingProvider"]
