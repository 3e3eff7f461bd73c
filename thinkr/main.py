"""Thinkr FastAPI application entry point.

Wires together all providers, services and routes via explicit dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``
and configures structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from thinkr import __version__
from thinkr.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from thinkr.api.routes import router as api_router
from thinkr.config.loader import load_config
from thinkr.config.settings import Settings
from thinkr.interfaces.embedding_provider import IEmbeddingProvider
from thinkr.interfaces.llm_provider import ILLMProvider
from thinkr.providers.embedding import NomicEmbeddingProvider, OpenAIEmbeddingProvider
from thinkr.providers.extraction import LocalExtractionProvider
from thinkr.providers.llm import OllamaLLMProvider, OpenAILLMProvider
from thinkr.providers.metadata import SQLiteMetadataStore
from thinkr.providers.storage import LocalObjectStore
from thinkr.providers.vector_store import ChromaDBProvider
from thinkr.services.chat_service import ChatService
from thinkr.services.context_assembler import ContextAssembler
from thinkr.services.document_service import DocumentService
from thinkr.services.ingestion.chunker import TextChunker
from thinkr.services.ingestion.extraction_poller import ExtractionJobPoller
from thinkr.services.ingestion.ingestion_service import IngestionService
from thinkr.services.recommendation_service import RecommendationService
from thinkr.services.study_material_service import StudyMaterialService
from thinkr.utils.errors import ConfigurationError
from thinkr.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _require_provider(app_settings: Settings) -> None:
    if not (app_settings.openai_api_key or app_settings.ollama_base_url):
        raise ConfigurationError(
            message="Set OPENAI_API_KEY or OLLAMA_BASE_URL to configure a model provider"
        )


def _build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """OpenAI when an API key is configured, Ollama otherwise."""
    _require_provider(app_settings)
    if app_settings.openai_api_key:
        return OpenAILLMProvider(settings=app_settings)
    return OllamaLLMProvider(settings=app_settings)


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """OpenAI (or compatible) embeddings when keyed, else Nomic via Ollama."""
    _require_provider(app_settings)
    if app_settings.openai_api_key:
        return OpenAIEmbeddingProvider(settings=app_settings)
    return NomicEmbeddingProvider(settings=app_settings)


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, app_config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    app_config = app_config if app_config is not None else config

    # -- Storage --
    metadata_store = SQLiteMetadataStore(db_path=app_settings.metadata_db_path)
    object_store = LocalObjectStore(base_dir=app_settings.object_store_dir)

    # -- Models --
    llm = _build_llm_provider(app_settings)
    embedding = _build_embedding_provider(app_settings)

    # -- Vector store --
    vector_store = ChromaDBProvider(
        embedding_provider=embedding,
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        tenancy=app_settings.vector_store_tenancy,
    )

    # -- Ingestion --
    extraction = LocalExtractionProvider(
        object_store=object_store,
        job_ttl_seconds=app_settings.extraction_job_ttl_seconds,
    )
    poller = ExtractionJobPoller(
        provider=extraction,
        poll_interval=app_settings.extraction_poll_interval,
        backoff_factor=app_settings.extraction_backoff_factor,
        max_poll_interval=app_settings.extraction_max_poll_interval,
        max_wait_seconds=app_settings.extraction_max_wait_seconds,
    )
    chunker = TextChunker(max_chars=app_settings.chunk_max_chars)
    study_service = StudyMaterialService(
        llm_provider=llm,
        metadata_store=metadata_store,
        vector_store=vector_store,
    )
    ingestion_service = IngestionService(
        metadata_store=metadata_store,
        poller=poller,
        chunker=chunker,
        vector_store=vector_store,
        study_service=study_service,
    )

    # -- Retrieval & chat --
    context_assembler = ContextAssembler(
        vector_store=vector_store,
        top_k=app_settings.context_top_k,
        token_budget=app_settings.context_token_budget,
    )
    chat_service = ChatService(
        llm_provider=llm,
        metadata_store=metadata_store,
        context_assembler=context_assembler,
        seed_message=app_config["chat"]["seed_message"],
        history_window=app_settings.chat_history_window,
        temperature=app_settings.llm_temperature,
        max_tokens=app_settings.llm_max_tokens,
    )

    # -- Suggestions --
    recommendation_service = RecommendationService(
        metadata_store=metadata_store,
        vector_store=vector_store,
        embedding_provider=embedding,
        concurrency=app_settings.suggestion_concurrency,
        public_only=app_settings.suggestions_public_only,
        default_limit=app_config["suggestions"]["default_limit"],
    )

    document_service = DocumentService(
        metadata_store=metadata_store,
        object_store=object_store,
        vector_store=vector_store,
        ingestion_service=ingestion_service,
    )

    provider_registry: dict[str, Any] = {
        "llm": llm.is_available(),
        "llm_name": llm.get_provider_name(),
        "embedding": embedding.is_available(),
        "embedding_name": embedding.get_provider_name(),
        "extraction": extraction.is_available(),
    }

    return {
        "metadata_store": metadata_store,
        "object_store": object_store,
        "llm_provider": llm,
        "embedding_provider": embedding,
        "vector_store": vector_store,
        "extraction_provider": extraction,
        "ingestion_service": ingestion_service,
        "study_service": study_service,
        "context_assembler": context_assembler,
        "chat_service": chat_service,
        "recommendation_service": recommendation_service,
        "document_service": document_service,
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["metadata_store"].initialize()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        llm=components["provider_registry"]["llm_name"],
        embedding=components["provider_registry"]["embedding_name"],
        tenancy=settings.vector_store_tenancy,
    )

    yield

    await components["ingestion_service"].shutdown()
    await components["extraction_provider"].shutdown()
    _logger.info("app_shutdown", message="background ingestion cancelled")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Thinkr API",
        version=__version__,
        description=(
            "Upload study documents, chat with an assistant grounded in them, "
            "and review generated flashcards and quizzes."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config["cors"]["allowed_origins"])

    application.include_router(api_router)
    return application


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main() -> None:
    uvicorn.run(
        "thinkr.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
