"""Lorebook data model and storage."""

from .schema import (
    Character,
    CharacterEntryState,
    ConceptEntryState,
    Entry,
    EntryCreator,
    EntryInjection,
    EntryType,
    EventEntryState,
    FactionEntryState,
    InjectionMode,
    Item,
    ItemEntryState,
    LiveWorldState,
    Location,
    LocationEntryState,
    LoreModel,
    StoryEntry,
    default_state_for,
    generate_id,
)
from .store import (
    ActivationRecord,
    ActivationStore,
    EntryStore,
    JsonActivationStore,
    JsonEntryStore,
    MemoryActivationStore,
    MemoryEntryStore,
)

__all__ = [
    # Schema
    "Character",
    "CharacterEntryState",
    "ConceptEntryState",
    "Entry",
    "EntryCreator",
    "EntryInjection",
    "EntryType",
    "EventEntryState",
    "FactionEntryState",
    "InjectionMode",
    "Item",
    "ItemEntryState",
    "LiveWorldState",
    "Location",
    "LocationEntryState",
    "LoreModel",
    "StoryEntry",
    "default_state_for",
    "generate_id",
    # Store
    "ActivationRecord",
    "ActivationStore",
    "EntryStore",
    "JsonActivationStore",
    "JsonEntryStore",
    "MemoryActivationStore",
    "MemoryEntryStore",
]
