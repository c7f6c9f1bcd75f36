"""
Keyword matching for tier-2 retrieval.

Plain substring containment is tried first (it also catches terms embedded
in compound words), then a case-insensitive word-boundary regex.
"""

import re
from typing import Iterable, Sequence

from ..state.schema import Entry, StoryEntry

MIN_TERM_LENGTH = 2


def text_matches(term: str, search_content: str) -> bool:
    """
    Check whether ``term`` occurs in ``search_content``.

    Terms shorter than two characters after trimming never match.
    """
    normalized = term.lower().strip()
    if len(normalized) < MIN_TERM_LENGTH:
        return False

    if normalized in search_content.lower():
        return True

    pattern = re.compile(rf"\b{re.escape(normalized)}\b", re.IGNORECASE)
    return pattern.search(search_content) is not None


def build_search_content(
    user_input: str,
    recent_story_entries: Sequence[StoryEntry],
    recent_count: int = 5,
) -> str:
    """User input plus the last ``recent_count`` story entries, lowercased."""
    recent = list(recent_story_entries)[-recent_count:] if recent_count > 0 else []
    recent_content = " ".join(e.content for e in recent)
    return f"{user_input} {recent_content}".lower()


def entry_terms(entry: Entry) -> Iterable[str]:
    """Name, then aliases, then injection keywords."""
    yield entry.name
    yield from entry.aliases
    yield from entry.injection.keywords


def find_matched_terms(entry: Entry, search_content: str) -> list[str]:
    """Matched terms for ``entry`` in first-seen order, deduplicated."""
    matched: list[str] = []
    for term in entry_terms(entry):
        if term not in matched and text_matches(term, search_content):
            matched.append(term)
    return matched
