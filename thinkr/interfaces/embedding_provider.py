"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-length vectors.
Implementations wrap OpenAI ``text-embedding-3-small`` or Nomic
``nomic-embed-text`` served locally by Ollama.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider  - text-embedding-3-small (requires API key)
#   NomicEmbeddingProvider   - nomic-embed-text via Ollama (local)
# Located in: thinkr/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for embedding services.

    Used by the vector store for chunk indexing and query search, and by the
    recommendation engine for whole-document similarity.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            per-call batch limits internally.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        thinkr.utils.errors.EmbeddingError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Example values: ``1536`` (OpenAI ``text-embedding-3-small``),
        ``768`` (Nomic ``nomic-embed-text``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
