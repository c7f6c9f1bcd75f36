"""
LLM-assisted selection for tier 3.

Entries that neither tier 1 nor tier 2 picked up are summarised and sent to
the completion backend, which returns the ids (or list indices) of the ones
relevant to the current scene. Any failure, timeout or cancellation yields an
empty selection; tiers 1 and 2 are unaffected.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Sequence

from pydantic import Field, field_validator

from ..llm.base import LLMClient, LLMError
from ..prompts import TIER3_SYSTEM_TEMPLATE, TIER3_USER_TEMPLATE, TemplateEngine
from ..state.schema import Entry, LoreModel, StoryEntry

logger = logging.getLogger(__name__)

SUMMARY_DESCRIPTION_CHARS = 100
_POLL_INTERVAL = 0.05  # Seconds between cancel checks


class SelectionCancelled(LLMError):
    """The caller cancelled the selection call."""


class SelectionTimeout(LLMError):
    """The selection call did not finish in time."""


class EntrySelection(LoreModel):
    """Structured reply expected from the selection model."""
    selected_ids: list[str] = Field(
        default_factory=list,
        description="IDs or list numbers of the most relevant entries",
    )
    reasoning: str | None = Field(
        default=None,
        description="Brief explanation of selection logic",
    )

    @field_validator("selected_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value):
        # Models often answer with bare numbers
        if isinstance(value, list):
            return [str(v) for v in value]
        return value


def summarize_entries(entries: Sequence[Entry]) -> str:
    """One numbered line per candidate: ``0. [type] Name: description...``."""
    lines = []
    for i, entry in enumerate(entries):
        desc = entry.description[:SUMMARY_DESCRIPTION_CHARS] if entry.description else ""
        line = f"{i}. [{entry.type.value}] {entry.name}"
        if desc:
            line += f": {desc}"
        lines.append(line)
    return "\n".join(lines)


def resolve_selection(selected_ids: Sequence[str], candidates: Sequence[Entry]) -> list[Entry]:
    """
    Map selected ids or indices back to candidate entries.

    Keeps the selector's own order, drops unknown and repeated references.
    Entry ids take precedence over list indices.
    """
    by_id = {entry.id: entry for entry in candidates}
    chosen: list[Entry] = []
    seen: set[str] = set()

    for ref in selected_ids:
        ref = ref.strip()
        entry = by_id.get(ref)
        if entry is None and ref.isascii() and ref.isdigit():
            index = int(ref)
            if index < len(candidates):
                entry = candidates[index]
        if entry is None or entry.id in seen:
            continue
        seen.add(entry.id)
        chosen.append(entry)

    return chosen


class LLMSelector:
    """Asks the completion backend to pick relevant entries from a candidate list."""

    def __init__(
        self,
        client: LLMClient,
        templates: TemplateEngine | None = None,
        temperature: float = 0.2,
        max_tokens: int = 500,
        timeout: float = 30.0,
        recent_entries_count: int = 5,
    ):
        self.client = client
        self.templates = templates or TemplateEngine()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.recent_entries_count = recent_entries_count

    def build_prompts(
        self,
        candidates: Sequence[Entry],
        user_input: str,
        recent_story_entries: Sequence[StoryEntry],
    ) -> tuple[str, str]:
        """Render the (system, user) prompt pair for a selection call."""
        recent = list(recent_story_entries)[-self.recent_entries_count:] if self.recent_entries_count > 0 else []
        recent_content = "\n\n".join(e.content for e in recent)

        system = self.templates.render(TIER3_SYSTEM_TEMPLATE, {"mode": "adventure"})
        prompt = self.templates.render(TIER3_USER_TEMPLATE, {
            "recent_content": recent_content,
            "user_input": user_input,
            "entry_summaries": summarize_entries(candidates),
        })
        return system, prompt

    def select(
        self,
        candidates: Sequence[Entry],
        user_input: str,
        recent_story_entries: Sequence[StoryEntry],
        max_entries: int = 0,
        cancel: threading.Event | None = None,
    ) -> list[Entry]:
        """
        Pick relevant candidates. Never raises.

        Args:
            candidates: Entries not resolved by tiers 1 and 2
            user_input: The player's next action
            recent_story_entries: Recent story text for scene context
            max_entries: Keep at most this many (0 = unlimited)
            cancel: Set this event to abandon the call

        Returns:
            Selected entries in the selector's order (empty on any failure)
        """
        if not candidates:
            return []

        try:
            system, prompt = self.build_prompts(candidates, user_input, recent_story_entries)
            selection = self._complete(system, prompt, cancel)
            chosen = resolve_selection(selection.selected_ids, candidates)
        except Exception as e:
            logger.warning("Tier 3 LLM selection failed: %s", e, exc_info=not isinstance(e, LLMError))
            return []

        logger.info(
            "Tier 3 LLM selection complete: %d candidates, %d selected (%s)",
            len(candidates),
            len(chosen),
            selection.reasoning or "no reasoning given",
        )

        if max_entries > 0:
            return chosen[:max_entries]
        return chosen

    def _complete(
        self,
        system: str,
        prompt: str,
        cancel: threading.Event | None,
    ) -> EntrySelection:
        """Run the blocking completion in a worker so it can be abandoned."""
        if cancel is not None and cancel.is_set():
            raise SelectionCancelled("Selection cancelled before the request was sent")

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tier3-select")
        future = executor.submit(
            self.client.complete_structured,
            system,
            prompt,
            EntrySelection,
            self.temperature,
            self.max_tokens,
        )
        deadline = time.monotonic() + self.timeout

        try:
            while True:
                done, _ = wait([future], timeout=_POLL_INTERVAL)
                if done:
                    return future.result()
                if cancel is not None and cancel.is_set():
                    _abandon(future)
                    raise SelectionCancelled("Selection cancelled by caller")
                if time.monotonic() >= deadline:
                    _abandon(future)
                    raise SelectionTimeout(f"Selection timed out after {self.timeout:.1f}s")
        finally:
            executor.shutdown(wait=False)


def _abandon(future: Future) -> None:
    """Stop waiting on a selection call; a late failure is still logged."""
    if not future.cancel():
        future.add_done_callback(_log_late_failure)


def _log_late_failure(future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.debug("Abandoned tier 3 selection call failed late: %s", error)
