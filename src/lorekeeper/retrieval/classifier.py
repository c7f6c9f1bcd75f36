"""
Tiered lorebook entry retrieval.

Decides on every turn which lorebook entries go into the prompt:

- Tier 1 (always active): live-tracked entities, ``always`` entries,
  legacy state-based conditions, and "sticky" entries activated recently.
- Tier 2 (keyword matched): name, alias or keyword found in the user input
  or recent story text.
- Tier 3 (LLM selected): the remaining candidates, filtered by a model.

Tiers 1 and 2 are deterministic. Tier 3 depends on the model and may vary
between runs; it degrades to an empty list on failure or cancellation.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Sequence

from ..config import RetrievalConfig
from ..llm import LLMClient, create_llm_client
from ..prompts import TemplateEngine
from ..state.schema import (
    CharacterEntryState,
    Entry,
    FactionEntryState,
    InjectionMode,
    ItemEntryState,
    LiveWorldState,
    LocationEntryState,
    StoryEntry,
)
from ..state.store import EntryStore
from .activation import ActivationTracker, sticky_priority
from .formatter import ContextBlockFormatter
from .live import is_live_entry, project_live_state
from .matcher import build_search_content, find_matched_terms
from .selector import LLMSelector

logger = logging.getLogger(__name__)


@dataclass
class RetrievedEntry:
    """An entry chosen for injection, with its tier and ranking."""
    entry: Entry
    tier: int
    priority: int
    match_reason: str | None = None


@dataclass
class EntryRetrievalResult:
    """Per-turn retrieval output. Recomputed fresh every turn."""
    tier1: list[RetrievedEntry] = field(default_factory=list)
    tier2: list[RetrievedEntry] = field(default_factory=list)
    tier3: list[RetrievedEntry] = field(default_factory=list)
    all: list[RetrievedEntry] = field(default_factory=list)
    context_block: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.all

    def ids_by_tier(self) -> dict[int, list[str]]:
        """Entry ids per tier, for diagnostics."""
        return {
            1: [r.entry.id for r in self.tier1],
            2: [r.entry.id for r in self.tier2],
            3: [r.entry.id for r in self.tier3],
        }


def _name_key(entry: Entry) -> tuple[str, str]:
    return (entry.type.value, entry.name.strip().casefold())


class EntryRetrievalService:
    """
    Retrieves relevant lorebook entries using tiered injection.

    Stateless apart from its configuration and collaborators, so one
    instance per story or session is fine.
    """

    def __init__(
        self,
        config: RetrievalConfig | None = None,
        selector: LLMSelector | None = None,
    ):
        self.config = config or RetrievalConfig()
        self.selector = selector
        self.formatter = ContextBlockFormatter(self.config.max_words_per_entry)

    def get_relevant_entries(
        self,
        entries: Sequence[Entry],
        user_input: str,
        recent_story_entries: Sequence[StoryEntry],
        live_state: LiveWorldState | None = None,
        activation_tracker: ActivationTracker | None = None,
        cancel: threading.Event | None = None,
    ) -> EntryRetrievalResult:
        """
        Classify entries into tiers and build the context block.

        Args:
            entries: Full lorebook for the story
            user_input: The player's next action
            recent_story_entries: Story so far (only the tail is searched)
            live_state: Actively tracked characters, locations and items
            activation_tracker: Stickiness state; tier-2 matches are recorded here
            cancel: Set to abandon the tier-3 call (tiers 1-2 still returned)

        Returns:
            EntryRetrievalResult with tiers, priority-sorted union and block
        """
        if activation_tracker is not None:
            current_position = activation_tracker.current_position
        else:
            current_position = len(recent_story_entries)

        logger.debug(
            "get_relevant_entries: %d entries, input %d chars, %d recent, position %d",
            len(entries),
            len(user_input),
            len(recent_story_entries),
            current_position,
        )

        search_content = build_search_content(
            user_input, recent_story_entries, self.config.recent_entries_count
        )

        tier1, shadowed = self._tier1(entries, live_state, activation_tracker, current_position)
        logger.debug("Tier 1 (always active): %s", [r.entry.name for r in tier1])

        excluded = {r.entry.id for r in tier1}
        candidates: list[Entry] = []
        for entry in entries:
            if entry.id in excluded or entry.injection.mode == InjectionMode.NEVER:
                continue
            if _name_key(entry) in shadowed:
                continue
            excluded.add(entry.id)
            candidates.append(entry)

        tier2 = self._tier2(candidates, search_content)
        logger.debug("Tier 2 (keyword matched): %s", [r.entry.name for r in tier2])

        tier2_ids = {r.entry.id for r in tier2}
        remaining = [e for e in candidates if e.id not in tier2_ids]

        tier3: list[RetrievedEntry] = []
        if self.config.enable_llm_selection and remaining and self.selector is not None:
            logger.debug("Tier 3 selection over %d remaining entries", len(remaining))
            tier3 = self._tier3(remaining, user_input, recent_story_entries, cancel)
            logger.debug("Tier 3 (LLM selected): %s", [r.entry.name for r in tier3])

        # Only tier-2 matches become sticky; tier-3 picks are not recorded.
        if activation_tracker is not None:
            recorded = 0
            for retrieved in tier2:
                if not is_live_entry(retrieved.entry):
                    activation_tracker.record_activation(retrieved.entry.id, current_position)
                    recorded += 1
            logger.debug("Recorded %d activations at position %d", recorded, current_position)

        ranked = sorted([*tier1, *tier2, *tier3], key=lambda r: r.priority, reverse=True)

        return EntryRetrievalResult(
            tier1=tier1,
            tier2=tier2,
            tier3=tier3,
            all=ranked,
            context_block=self.formatter.format(tier1, tier2, tier3),
        )

    def retrieve_for_story(
        self,
        store: EntryStore,
        story_id: str,
        user_input: str,
        recent_story_entries: Sequence[StoryEntry],
        live_state: LiveWorldState | None = None,
        activation_tracker: ActivationTracker | None = None,
        cancel: threading.Event | None = None,
    ) -> EntryRetrievalResult:
        """Load the story's lorebook from ``store`` and retrieve against it."""
        return self.get_relevant_entries(
            store.load_entries(story_id),
            user_input,
            recent_story_entries,
            live_state=live_state,
            activation_tracker=activation_tracker,
            cancel=cancel,
        )

    # -------------------------------------------------------------------------
    # Tiers
    # -------------------------------------------------------------------------

    def _tier1(
        self,
        entries: Sequence[Entry],
        live_state: LiveWorldState | None,
        activation_tracker: ActivationTracker | None,
        current_position: int,
    ) -> tuple[list[RetrievedEntry], set[tuple[str, str]]]:
        """
        Always-active entries.

        Returns the tier plus the (type, name) keys of live mirrors; lorebook
        entries with the same key are shadowed by the live mirror.
        """
        p = self.config.priorities
        result: list[RetrievedEntry] = []
        included: set[str] = set()
        shadowed: set[tuple[str, str]] = set()

        if live_state is not None:
            projected = project_live_state(
                live_state,
                character_priority=p.live_character,
                location_priority=p.live_location,
                item_priority=p.live_item,
            )
            for entry, priority, reason in projected:
                if entry.id in included:
                    continue
                result.append(RetrievedEntry(entry=entry, tier=1, priority=priority, match_reason=reason))
                included.add(entry.id)
                shadowed.add(_name_key(entry))

        for entry in entries:
            if entry.id in included or _name_key(entry) in shadowed:
                continue

            include = False
            priority = 0
            reason = ""

            if entry.injection.mode == InjectionMode.ALWAYS:
                include = True
                priority = p.always
                reason = "always inject"

            state_reason, state_priority = self._state_condition(entry)
            if state_reason:
                include = True
                priority = max(priority, state_priority)
                reason = state_reason

            if not include and activation_tracker is not None:
                last = activation_tracker.get_last_activation(entry.id)
                if last is not None:
                    window = self.config.decay_window(entry.type)
                    turns_since = max(0, current_position - last)
                    if turns_since <= window:
                        include = True
                        priority = max(
                            priority,
                            sticky_priority(turns_since, window, p.sticky_base, p.sticky_span),
                        )
                        reason = f"sticky ({entry.type.value}, {window - turns_since} turns left)"

            if include:
                result.append(RetrievedEntry(entry=entry, tier=1, priority=priority, match_reason=reason))
                included.add(entry.id)

        return result, shadowed

    def _state_condition(self, entry: Entry) -> tuple[str, int]:
        """Legacy state-based tier-1 condition; ("", 0) when none applies."""
        p = self.config.priorities
        state = entry.state

        if isinstance(state, CharacterEntryState) and state.is_present:
            return "lorebook: character present", p.state_character_present
        if isinstance(state, LocationEntryState) and state.is_current_location:
            return "lorebook: current location", p.state_current_location
        if isinstance(state, ItemEntryState) and state.in_inventory:
            return "lorebook: in inventory", p.state_in_inventory
        if isinstance(state, FactionEntryState) and state.status in ("allied", "hostile"):
            return f"lorebook: faction {state.status}", p.state_faction_stance
        # Concept and event state never force inclusion
        return "", 0

    def _tier2(self, candidates: Sequence[Entry], search_content: str) -> list[RetrievedEntry]:
        base = self.config.priorities.keyword_base
        result = []
        for entry in candidates:
            matched = find_matched_terms(entry, search_content)
            if matched:
                result.append(RetrievedEntry(
                    entry=entry,
                    tier=2,
                    priority=base + entry.injection.priority,
                    match_reason=f"matched: {', '.join(matched)}",
                ))
        return result

    def _tier3(
        self,
        remaining: Sequence[Entry],
        user_input: str,
        recent_story_entries: Sequence[StoryEntry],
        cancel: threading.Event | None,
    ) -> list[RetrievedEntry]:
        base = self.config.priorities.llm_base
        selected = self.selector.select(
            remaining,
            user_input,
            recent_story_entries,
            max_entries=self.config.max_tier3_entries,
            cancel=cancel,
        )
        return [
            RetrievedEntry(
                entry=entry,
                tier=3,
                priority=base + entry.injection.priority,
                match_reason="LLM selected",
            )
            for entry in selected
        ]


# -----------------------------------------------------------------------------
# Factories
# -----------------------------------------------------------------------------

def create_retrieval_service(
    config: RetrievalConfig | None = None,
    llm_client: LLMClient | None = None,
    backend: str | None = None,
    templates: TemplateEngine | None = None,
) -> EntryRetrievalService:
    """
    Build a retrieval service.

    Args:
        config: Retrieval knobs (defaults if None)
        llm_client: Completion backend for tier 3
        backend: Backend name to create a client for when ``llm_client`` is None
        templates: Prompt templates (built-in defaults if None)

    Without a client, tier 3 is skipped.
    """
    config = config or RetrievalConfig()

    if llm_client is None and backend and config.enable_llm_selection:
        _, llm_client = create_llm_client(backend, model=config.tier3_model)

    selector = None
    if llm_client is not None:
        selector = LLMSelector(
            llm_client,
            templates=templates,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.selection_timeout,
            recent_entries_count=config.recent_entries_count,
        )

    return EntryRetrievalService(config, selector)


def get_relevant_entries(
    entries: Sequence[Entry],
    user_input: str,
    recent_story_entries: Sequence[StoryEntry],
    live_state: LiveWorldState | None = None,
    activation_tracker: ActivationTracker | None = None,
    config: RetrievalConfig | None = None,
    llm_client: LLMClient | None = None,
    cancel: threading.Event | None = None,
) -> EntryRetrievalResult:
    """One-shot retrieval without keeping a service instance around."""
    service = create_retrieval_service(config, llm_client)
    return service.get_relevant_entries(
        entries,
        user_input,
        recent_story_entries,
        live_state=live_state,
        activation_tracker=activation_tracker,
        cancel=cancel,
    )
