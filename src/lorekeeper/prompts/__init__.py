"""Prompt templates for retrieval."""

from .templates import (
    DEFAULT_TEMPLATES,
    TIER3_SYSTEM_TEMPLATE,
    TIER3_USER_TEMPLATE,
    PromptTemplateLoader,
    TemplateEngine,
)

__all__ = [
    "DEFAULT_TEMPLATES",
    "TIER3_SYSTEM_TEMPLATE",
    "TIER3_USER_TEMPLATE",
    "PromptTemplateLoader",
    "TemplateEngine",
]
