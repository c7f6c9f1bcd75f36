"""LLM completion clients used for tier-3 entry selection."""

import logging
from typing import Literal

from .base import (
    LLMClient,
    LLMError,
    LLMResponse,
    Message,
    StructuredOutputError,
    extract_json_object,
)
from .openrouter import OpenRouterClient, create_openrouter_client

logger = logging.getLogger(__name__)

__all__ = [
    "LLMClient",
    "LLMError",
    "LLMResponse",
    "Message",
    "StructuredOutputError",
    "extract_json_object",
    "OpenRouterClient",
    "create_openrouter_client",
    "MockLLMClient",
    "create_llm_client",
]


# -----------------------------------------------------------------------------
# Test double
# -----------------------------------------------------------------------------

class MockLLMClient(LLMClient):
    """
    Scripted client for tests.

    Replies are served in order and cycle when exhausted. A scripted
    exception instance is raised instead of returned, which is how tests
    simulate transport failures. Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        responses: list[str | BaseException] | None = None,
        model_name: str = "mock-model",
    ):
        self._responses = responses or ['{"selectedIds": []}']
        self._call_count = 0
        self._model_name = model_name
        self.calls: list[dict] = []

    @property
    def model_name(self) -> str:
        return self._model_name

    def chat(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ) -> LLMResponse:
        self.calls.append({
            "method": "chat",
            "messages": messages,
            "system": system,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        response = self._responses[self._call_count % len(self._responses)]
        self._call_count += 1
        if isinstance(response, BaseException):
            raise response
        return LLMResponse(content=response)

    def set_responses(self, responses: list[str | BaseException]) -> None:
        """Update the list of responses."""
        self._responses = responses
        self._call_count = 0

    def reset(self) -> None:
        """Reset call count and recorded calls."""
        self._call_count = 0
        self.calls.clear()


# -----------------------------------------------------------------------------
# Factory
# -----------------------------------------------------------------------------

BackendType = Literal["openrouter", "mock"]


def create_llm_client(
    backend: BackendType = "openrouter",
    model: str | None = None,
) -> tuple[str, LLMClient | None]:
    """
    Create an LLM client for the specified backend.

    Returns:
        Tuple of (backend_name, client). Client is None if unavailable.
    """
    if backend == "openrouter":
        try:
            if model:
                return ("openrouter", create_openrouter_client(model=model))
            return ("openrouter", create_openrouter_client())
        except ValueError as e:
            logger.warning("OpenRouter unavailable: %s", e)
            return ("openrouter", None)

    if backend == "mock":
        return ("mock", MockLLMClient(model_name=model or "mock-model"))

    logger.warning("Unknown backend: %s", backend)
    return (backend, None)
