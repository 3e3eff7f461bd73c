"""Public interface definitions for all external service providers.

Every backing service is accessed through the abstract base classes in this
package.  Concrete adapters implement them and are constructed explicitly
in ``thinkr/main.py``, so tests can inject fakes and deployments can swap
backends without touching services.

CONCRETE PROVIDER MAP:
    Interface              →  Concrete implementations (in thinkr/providers/)
    ─────────────────────────────────────────────────────────────────────
    ILLMProvider           →  OpenAILLMProvider, OllamaLLMProvider
    IEmbeddingProvider     →  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    IVectorStoreProvider   →  ChromaDBProvider
    IExtractionProvider    →  LocalExtractionProvider
    IObjectStore           →  LocalObjectStore
    IMetadataStore         →  SQLiteMetadataStore
"""

from thinkr.interfaces.embedding_provider import IEmbeddingProvider
from thinkr.interfaces.extraction_provider import IExtractionProvider
from thinkr.interfaces.llm_provider import ILLMProvider
from thinkr.interfaces.metadata_store import IMetadataStore
from thinkr.interfaces.object_store import IObjectStore
from thinkr.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "IExtractionProvider",
    "ILLMProvider",
    "IMetadataStore",
    "IObjectStore",
    "IVectorStoreProvider",
]
