"""Ollama LLM provider adapter.

Wraps a local Ollama server through its OpenAI-compatible ``/v1`` API using
the ``openai`` client.  Runs fully offline with no API costs.

Setup: install Ollama, ``ollama pull llama3.1``, and set
``OLLAMA_BASE_URL=http://localhost:11434``.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import openai
import structlog

from thinkr.config.settings import Settings
from thinkr.interfaces.llm_provider import ILLMProvider
from thinkr.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server.

    Structured generation uses JSON mode (``json_object``) with the schema
    spelled out in the system prompt, which every Ollama release supports.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url
        self._client = client or openai.AsyncOpenAI(
            base_url=f"{self._base_url.rstrip('/')}/v1",
            api_key="ollama",  # required by the SDK, ignored by Ollama
        )
        self._text_model = settings.ollama_text_model

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a text completion via Ollama's OpenAI-compatible API."""
        content = await self._create(
            system_prompt,
            user_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        logger.info("ollama_completion", model=self._text_model)
        return content

    async def structured_generate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema_name: str,
        json_schema: dict[str, Any],
        temperature: float = 0.3,
    ) -> str:
        """Generate JSON in JSON mode, with the schema appended to the system prompt."""
        schema_prompt = (
            f"{system_prompt}\n\nRespond only with a JSON object named {schema_name!r} "
            f"that matches this JSON Schema:\n{json.dumps(json_schema)}"
        )
        content = await self._create(
            schema_prompt,
            user_prompt,
            temperature=temperature,
            max_tokens=self._settings.llm_max_tokens,
            response_format={"type": "json_object"},
        )
        logger.info("ollama_structured_generate", model=self._text_model, schema=schema_name)
        return content

    def is_available(self) -> bool:
        """Ollama needs no key; a configured base URL is enough."""
        return bool(self._base_url)

    async def validate_credentials(self) -> bool:
        """Check the Ollama server answers on ``/api/tags``."""
        if not self._base_url:
            return False
        try:
            async with httpx.AsyncClient(timeout=3.0) as client:
                response = await client.get(f"{self._base_url.rstrip('/')}/api/tags")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def get_provider_name(self) -> str:
        return "ollama"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _create(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        response_format: dict[str, Any] | None = None,
    ) -> str:
        kwargs: dict[str, Any] = {
            "model": self._text_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format is not None:
            kwargs["response_format"] = response_format
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            raise LLMError(
                message=f"Ollama API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise LLMError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        return content
