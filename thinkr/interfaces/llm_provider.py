"""Abstract base class for LLM service providers.

Defines the contract for the language-model backend used for grounded chat
replies and schema-constrained study-material generation.  Implementations
wrap OpenAI (or any OpenAI-compatible API) and a local Ollama server; the
adapter pattern keeps every call-site provider-agnostic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


# Concrete implementations: OpenAILLMProvider, OllamaLLMProvider
# Located in: thinkr/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services used by chat and study-material generation."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a free-text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the request and any context.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        thinkr.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    async def structured_generate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema_name: str,
        json_schema: dict[str, Any],
        temperature: float = 0.3,
    ) -> str:
        """Generate output constrained to *json_schema*.

        Parameters
        ----------
        system_prompt:
            Instruction message describing the task.
        user_prompt:
            The source material to generate from.
        schema_name:
            Short identifier for the schema (e.g. ``"flashcards"``).
        json_schema:
            JSON Schema the response must follow.  The top level is always
            an object.

        Returns
        -------
        str
            Raw JSON text.  Callers parse and validate it; providers do not
            guarantee conformance.

        Raises
        ------
        thinkr.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this LLM provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Implementations check that credentials or a base URL are present
        without making an inference call.
        """

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Perform a lightweight API call to confirm the provider accepts requests."""
