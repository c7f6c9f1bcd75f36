"""
OpenRouter completion backend for tier-3 selection.

OpenRouter exposes many hosted models behind one OpenAI-compatible endpoint,
which lets the selection model be swapped from settings alone.
https://openrouter.ai/docs
"""

import json
import logging
import os
import urllib.error
import urllib.request

from .base import LLMClient, LLMResponse, Message

logger = logging.getLogger(__name__)

API_KEY_ENV = "OPENROUTER_API_KEY"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "grok-4.1-fast"

# Short names for models that handle the selection prompt well
OPENROUTER_MODELS = {
    "grok-4.1-fast": "x-ai/grok-4.1-fast",
    "claude-3.5-haiku": "anthropic/claude-3.5-haiku",
    "gpt-4o-mini": "openai/gpt-4o-mini",
    "gpt-4o": "openai/gpt-4o",
    "gemini-flash-1.5": "google/gemini-flash-1.5",
    "llama-3.1-8b-free": "meta-llama/llama-3.1-8b-instruct:free",
}


def resolve_model(model: str) -> str:
    """Expand a short alias; full ``provider/model`` paths pass through."""
    if "/" in model:
        return model
    return OPENROUTER_MODELS.get(model, model)


class OpenRouterClient(LLMClient):
    """
    Chat completions over OpenRouter.

    The key comes from ``api_key`` or the OPENROUTER_API_KEY environment
    variable. Transport and API failures raise ConnectionError.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 60,
        app_name: str = "Lorekeeper",
        app_url: str | None = None,
    ):
        self.api_key = api_key or os.environ.get(API_KEY_ENV)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.app_name = app_name
        self.app_url = app_url
        self._model = resolve_model(model)

    @property
    def model_name(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        self._model = resolve_model(model)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.app_name,
        }
        # Attribution header is optional on OpenRouter
        if self.app_url:
            headers["HTTP-Referer"] = self.app_url
        return headers

    def _request(self, endpoint: str, payload: dict | None = None) -> dict:
        """POST ``payload`` (or GET when None) and decode the JSON reply."""
        if not self.api_key:
            raise ValueError(f"OpenRouter API key not set. Set {API_KEY_ENV} or pass api_key.")

        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(
            f"{self.base_url}/{endpoint}",
            data=body,
            headers=self._headers(),
            method="POST" if body is not None else "GET",
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")
            raise ConnectionError(f"OpenRouter API error {e.code}: {detail}") from e
        except urllib.error.URLError as e:
            raise ConnectionError(f"Cannot connect to OpenRouter: {e.reason}") from e

    def chat(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ) -> LLMResponse:
        api_messages = [{"role": "system", "content": system}] if system else []
        api_messages.extend({"role": m.role, "content": m.content} for m in messages)

        reply = self._request("chat/completions", {
            "model": self._model,
            "messages": api_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })

        try:
            choice = reply["choices"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise ConnectionError(f"Unexpected OpenRouter response: {str(reply)[:200]}") from e

        if choice.get("finish_reason") == "length":
            logger.debug("OpenRouter reply from %s hit max_tokens=%d", self._model, max_tokens)

        return LLMResponse(
            content=(choice.get("message") or {}).get("content") or "",
            finish_reason=choice.get("finish_reason") or "stop",
        )

    def is_available(self) -> bool:
        """True if a key is set and the models endpoint answers."""
        if not self.api_key:
            return False
        try:
            self._request("models")
        except (ConnectionError, ValueError):
            return False
        return True


def create_openrouter_client(
    api_key: str | None = None,
    model: str = DEFAULT_MODEL,
) -> OpenRouterClient:
    """Build a client, failing early with ValueError when no key is configured."""
    client = OpenRouterClient(api_key=api_key, model=model)
    if not client.api_key:
        raise ValueError(
            f"OpenRouter API key required. Set {API_KEY_ENV} or pass api_key. "
            "Get a key at: https://openrouter.ai/keys"
        )
    return client
