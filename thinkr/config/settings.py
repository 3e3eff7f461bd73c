"""Application settings loaded from environment variables via pydantic-settings.

Two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. The ``.env`` file in the project root (local development)

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults
apply when neither source sets a value.
"""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Thinkr application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === LLM / embedding providers ===
    # Empty key = not configured; main.py falls through to Ollama.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    ollama_text_model: str = "llama3.1"
    llm_temperature: float = 0.7
    llm_max_tokens: int = 2000

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "thinkr_chunks"
    # "shared": one collection filtered by owner; "per_owner": user_<id> collections.
    vector_store_tenancy: Literal["shared", "per_owner"] = "shared"

    # === Ingestion ===
    chunk_max_chars: int = 1000
    extraction_poll_interval: float = 1.0
    extraction_backoff_factor: float = 1.5
    extraction_max_poll_interval: float = 10.0
    extraction_max_wait_seconds: float = 300.0
    extraction_job_ttl_seconds: int = 3600

    # === Retrieval / chat ===
    context_top_k: int = 5
    context_token_budget: int = 4000
    chat_history_window: int = 5

    # === Recommendations ===
    suggestion_concurrency: int = 4
    suggestions_public_only: bool = False

    # === Persistence ===
    metadata_db_path: str = "data/thinkr.db"
    object_store_dir: str = "data/objects"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return LLM provider names that are configured, in selection order."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
