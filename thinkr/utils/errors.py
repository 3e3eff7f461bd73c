"""Custom exception hierarchy for Thinkr.

All application exceptions inherit from :class:`ThinkrError`, which carries
an optional ``provider_name`` so error handlers can identify which backing
service (e.g. "openai", "chromadb", "sqlite_metadata") caused the failure.

The hierarchy is organized by pipeline stage:

    ThinkrError  (base -- catch-all for any thinkr error)
    +-- ExtractionError          (text extraction job failed)
    |   +-- ExtractionTimeoutError   (job did not finish within the wait bound)
    +-- GenerationSchemaError    (LLM output did not match the study schema)
    +-- EmbeddingError           (embedding provider call failed)
    +-- LLMError                 (any LLM API call failure)
    +-- TransientStoreError      (vector or metadata store call failed)
    |   +-- StoreUnavailableError    (store unreachable on a write path)
    +-- NotFoundError            (requested document does not exist)
    +-- ConfigurationError       (startup / missing config)

Read paths degrade on :class:`TransientStoreError`; write paths let it
propagate.  :class:`GenerationSchemaError` only aborts the study-material
kind it was raised for.
"""


class ThinkrError(Exception):
    """Base exception for all Thinkr errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which backing service triggered the
    error.  ``__str__`` prefixes the provider name in brackets for log
    output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class ExtractionError(ThinkrError):
    """Raised when a text extraction job fails or returns no usable text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ExtractionTimeoutError(ExtractionError):
    """Raised when an extraction job is still running after the wait bound."""

    def __init__(
        self,
        message: str = "Text extraction timed out",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GenerationSchemaError(ThinkrError):
    """Raised when generated study material does not match its schema.

    ``kind`` names the study-material kind ("flashcards" or "quiz") whose
    generation failed, so the caller can keep the other kind.
    """

    def __init__(
        self,
        message: str = "Generated study material did not match the schema",
        provider_name: str | None = None,
        kind: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._kind = kind

    @property
    def kind(self) -> str | None:
        return self._kind


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class EmbeddingError(ThinkrError):
    """Raised when an embedding provider call fails."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(ThinkrError):
    """Raised when an LLM API call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class TransientStoreError(ThinkrError):
    """Raised when a vector-store or metadata-store call fails.

    Nothing retries automatically; callers decide whether to degrade or
    propagate.
    """

    def __init__(
        self,
        message: str = "Store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreUnavailableError(TransientStoreError):
    """Raised when a store cannot accept a write."""

    def __init__(
        self,
        message: str = "Store is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NotFoundError(ThinkrError):
    """Raised when a requested document or record does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------

class ConfigurationError(ThinkrError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
