"""Tiered lorebook retrieval and context injection."""

from .activation import (
    STICKINESS_BY_TYPE,
    ActivationTracker,
    SimpleActivationTracker,
    sticky_priority,
)
from .classifier import (
    EntryRetrievalResult,
    EntryRetrievalService,
    RetrievedEntry,
    create_retrieval_service,
    get_relevant_entries,
)
from .formatter import ContextBlockFormatter, build_context_block, truncate_words
from .live import is_live_entry, project_live_state
from .matcher import build_search_content, find_matched_terms, text_matches
from .selector import (
    EntrySelection,
    LLMSelector,
    SelectionCancelled,
    SelectionTimeout,
)

__all__ = [
    # Activation
    "STICKINESS_BY_TYPE",
    "ActivationTracker",
    "SimpleActivationTracker",
    "sticky_priority",
    # Classifier
    "EntryRetrievalResult",
    "EntryRetrievalService",
    "RetrievedEntry",
    "create_retrieval_service",
    "get_relevant_entries",
    # Formatter
    "ContextBlockFormatter",
    "build_context_block",
    "truncate_words",
    # Live state
    "is_live_entry",
    "project_live_state",
    # Matcher
    "build_search_content",
    "find_matched_terms",
    "text_matches",
    # Selector
    "EntrySelection",
    "LLMSelector",
    "SelectionCancelled",
    "SelectionTimeout",
]
