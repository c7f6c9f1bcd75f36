"""
Base LLM client abstraction.

Defines the interface every completion backend implements, plus structured
output on top of plain chat: the reply is expected to contain a JSON object
which is validated against a pydantic schema.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal, TypeVar

from pydantic import BaseModel, ValidationError

SchemaT = TypeVar("SchemaT", bound=BaseModel)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)


class LLMError(Exception):
    """Base class for completion failures."""


class StructuredOutputError(LLMError):
    """The reply could not be parsed or validated against the schema."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message)
        self.raw = raw


@dataclass
class Message:
    """A message in the conversation."""
    role: Literal["system", "user", "assistant"]
    content: str


@dataclass
class LLMResponse:
    """Response from the LLM."""
    content: str
    finish_reason: str = "stop"


def extract_json_object(text: str) -> str | None:
    """
    Find the JSON object in a model reply.

    Prefers a fenced ```json block, then the span from the first ``{`` to
    the last ``}``.
    """
    fenced = _FENCED_JSON.search(text)
    if fenced:
        return fenced.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def schema_instructions(schema: type[BaseModel]) -> str:
    """Prompt suffix telling the model to answer with JSON for ``schema``."""
    return (
        "Respond ONLY with a JSON object matching this JSON schema:\n"
        f"{json.dumps(schema.model_json_schema(by_alias=True), indent=2)}"
    )


class LLMClient(ABC):
    """
    Abstract base class for LLM backends.

    All backends must implement:
    - chat(): Send messages and get a response
    - model_name: The model identifier
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """The model identifier."""
        pass

    @abstractmethod
    def chat(
        self,
        messages: list[Message],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 2048,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation history
            system: System prompt
            temperature: Sampling temperature
            max_tokens: Maximum response tokens

        Returns:
            LLMResponse with the reply text
        """
        pass

    def complete_structured(
        self,
        system: str,
        prompt: str,
        schema: type[SchemaT],
        temperature: float = 0.2,
        max_tokens: int = 500,
    ) -> SchemaT:
        """
        Ask for a reply conforming to ``schema`` and validate it.

        Raises:
            StructuredOutputError: reply has no JSON object or fails validation
            ConnectionError: transport failure in the backend
        """
        response = self.chat(
            [Message(role="user", content=f"{prompt}\n\n{schema_instructions(schema)}")],
            system=system,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        raw = extract_json_object(response.content)
        if raw is None:
            raise StructuredOutputError("No JSON object in model reply", response.content)

        try:
            return schema.model_validate_json(raw)
        except ValidationError as e:
            raise StructuredOutputError(f"Reply failed schema validation: {e}", response.content) from e
