"""Bounded-time chat-completion calls over OpenAI-compatible endpoints."""

import asyncio
import logging
import os
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from openai import AsyncOpenAI

from config.config_loader import NO_API_KEY
from brainstorm.models import ResolvedModel
from brainstorm.registry import ProviderRegistry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 120.0
DEFAULT_MAX_OUTPUT_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7

LEGACY_TOKEN_PARAM = "max_tokens"


class ModelCallError(Exception):
    """Raised when a single model call fails."""

    def __init__(self, label: str, message: str) -> None:
        self.label = label
        super().__init__(f"[{label}] {message}")


class ModelTimeout(ModelCallError):
    """The call did not finish before its deadline."""


class EmptyResponse(ModelCallError):
    """The backend answered without any content."""


class MissingApiKey(ModelCallError):
    """The env var holding the backend's API key is not set."""


@dataclass(frozen=True)
class RequestShape:
    """Model ids matching ``pattern`` take their output cap under ``token_param``."""

    pattern: re.Pattern[str]
    token_param: str


# Newer OpenAI generations reject max_tokens in favour of max_completion_tokens.
REQUEST_SHAPES: tuple[RequestShape, ...] = (
    RequestShape(re.compile(r"^(gpt-5|o[0-9])"), "max_completion_tokens"),
)


def token_param_for(model_id: str, shapes: tuple[RequestShape, ...] = REQUEST_SHAPES) -> str:
    for shape in shapes:
        if shape.pattern.search(model_id):
            return shape.token_param
    return LEGACY_TOKEN_PARAM


class ModelClient:
    """Resolves identifiers and issues one bounded-time call per request.

    SDK clients are pooled per (base_url, api_key_env) for the lifetime of
    the process; they are never shared across different backends.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        request_shapes: tuple[RequestShape, ...] = REQUEST_SHAPES,
        client_factory: Callable[..., AsyncOpenAI] = AsyncOpenAI,
    ) -> None:
        self.registry = registry
        self.timeout_sec = timeout_sec
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self._request_shapes = request_shapes
        self._client_factory = client_factory
        self._pool: dict[tuple[str, str], AsyncOpenAI] = {}

    def resolve(self, identifier: str) -> ResolvedModel:
        return self.registry.resolve(identifier)

    def _get_client(self, model: ResolvedModel, label: str) -> AsyncOpenAI:
        key = (model.base_url, model.api_key_env)
        cached = self._pool.get(key)
        if cached is not None:
            return cached

        if model.api_key_env == NO_API_KEY:
            api_key = "not-needed"
        else:
            api_key = os.environ.get(model.api_key_env, "").strip()
            if not api_key:
                raise MissingApiKey(
                    label, f"Missing API key: environment variable {model.api_key_env} is not set"
                )

        client = self._client_factory(api_key=api_key, base_url=model.base_url)
        self._pool[key] = client
        return client

    async def call(
        self,
        model: ResolvedModel,
        label: str,
        system_message: str,
        user_message: str,
        timeout_sec: float | None = None,
    ) -> str:
        """Send one system+user message pair and return the generated text.

        Raises:
            ModelTimeout: The deadline elapsed; the request is cancelled.
            EmptyResponse: The backend returned no content.
            MissingApiKey: The backend's key is not configured.
            openai.OpenAIError: Raw backend failure.
        """
        timeout = self.timeout_sec if timeout_sec is None else timeout_sec
        client = self._get_client(model, label)

        request = {
            "model": model.model_id,
            "messages": [
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message},
            ],
            "temperature": self.temperature,
            token_param_for(model.model_id, self._request_shapes): self.max_output_tokens,
        }

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(**request),
                timeout=timeout,
            )
        except TimeoutError as exc:
            raise ModelTimeout(label, f"timed out after {round(timeout)}s") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise EmptyResponse(label, "returned an empty response")

        logger.debug("%s answered in %.2fs (%d chars)", label, latency, len(choice.message.content))
        return choice.message.content
