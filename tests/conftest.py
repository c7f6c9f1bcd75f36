"""
Pytest fixtures for lorekeeper tests.

Provides sample lorebooks, live state, in-memory stores and mock clients for
isolated testing.
"""

import pytest

from lorekeeper.config import RetrievalConfig
from lorekeeper.llm import MockLLMClient
from lorekeeper.retrieval import SimpleActivationTracker, create_retrieval_service
from lorekeeper.state import (
    Character,
    CharacterEntryState,
    Entry,
    EntryInjection,
    EntryType,
    FactionEntryState,
    InjectionMode,
    Item,
    LiveWorldState,
    Location,
    MemoryActivationStore,
    MemoryEntryStore,
    StoryEntry,
)

STORY_ID = "story01"


def make_entry(
    name: str,
    entry_type: EntryType = EntryType.CONCEPT,
    description: str = "",
    mode: InjectionMode = InjectionMode.KEYWORD,
    keywords: list[str] | None = None,
    aliases: list[str] | None = None,
    priority: int = 0,
    entry_id: str | None = None,
    **state,
) -> Entry:
    """Build an entry with the default state for its type, overridden by ``state``."""
    data = {
        "story_id": STORY_ID,
        "name": name,
        "type": entry_type,
        "description": description or f"About {name}.",
        "aliases": aliases or [],
        "injection": EntryInjection(mode=mode, keywords=keywords or [], priority=priority),
        "state": {"type": EntryType(entry_type).value, **state},
    }
    if entry_id:
        data["id"] = entry_id
    return Entry.model_validate(data)


def story(*contents: str) -> list[StoryEntry]:
    return [
        StoryEntry(story_id=STORY_ID, content=c, position=i)
        for i, c in enumerate(contents)
    ]


@pytest.fixture
def entry_factory():
    """The ``make_entry`` helper, for tests that build their own lorebook."""
    return make_entry


@pytest.fixture
def lorebook():
    """Small mixed lorebook covering every entry type."""
    return [
        make_entry(
            "Aragorn", EntryType.CHARACTER, "Ranger of the North.",
            aliases=["Strider"], entry_id="char-aragorn",
        ),
        make_entry(
            "Rivendell", EntryType.LOCATION, "Hidden valley of the elves.",
            entry_id="loc-rivendell",
        ),
        make_entry(
            "Anduril", EntryType.ITEM, "Sword reforged from the shards of Narsil.",
            keywords=["reforged sword"], entry_id="item-anduril",
        ),
        make_entry(
            "The Rangers", EntryType.FACTION, "Wardens of the wild lands.",
            entry_id="fac-rangers",
        ),
        make_entry(
            "The One Ring", EntryType.CONCEPT, "A ring of power that corrupts its bearer.",
            mode=InjectionMode.ALWAYS, entry_id="concept-ring",
        ),
        make_entry(
            "Battle of Five Armies", EntryType.EVENT, "A great battle beneath the Lonely Mountain.",
            entry_id="event-battle",
        ),
    ]


@pytest.fixture
def live_state():
    """Live world with one active character, one current location and one carried item."""
    return LiveWorldState(
        characters=[
            Character(id="c1", story_id=STORY_ID, name="Eldara", description="An elven scout.",
                      relationship="wary ally"),
            Character(id="c2", story_id=STORY_ID, name="Borin", description="A retired smith.",
                      status="inactive"),
        ],
        locations=[
            Location(id="l1", story_id=STORY_ID, name="Misty Vale", description="Fog-bound valley.",
                     visited=True, current=True),
            Location(id="l2", story_id=STORY_ID, name="Old Road", visited=True),
        ],
        items=[
            Item(id="i1", story_id=STORY_ID, name="Lantern", description="A brass lantern.",
                 quantity=2, equipped=True),
            Item(id="i2", story_id=STORY_ID, name="Map", location="Borin's forge"),
        ],
    )


@pytest.fixture
def tracker():
    """Activation tracker positioned at turn 10."""
    return SimpleActivationTracker(current_position=10)


@pytest.fixture
def mock_client():
    """Mock LLM client that selects nothing."""
    return MockLLMClient()


@pytest.fixture
def config():
    """Default retrieval config with a short selection timeout."""
    return RetrievalConfig(selection_timeout=2.0)


@pytest.fixture
def service(config, mock_client):
    """Retrieval service wired to the mock client."""
    return create_retrieval_service(config, llm_client=mock_client)


@pytest.fixture
def entry_store(lorebook):
    """In-memory entry store holding the sample lorebook."""
    store = MemoryEntryStore()
    store.add(*lorebook)
    return store


@pytest.fixture
def activation_store():
    """In-memory activation store."""
    return MemoryActivationStore()


@pytest.fixture
def faction_entry():
    """Hostile faction entry (state-based tier 1)."""
    return make_entry(
        "Black Hand", EntryType.FACTION, "A guild of assassins.",
        status="hostile", entry_id="fac-blackhand",
    )


@pytest.fixture
def present_character():
    """Lorebook character marked present in the scene."""
    return Entry(
        id="char-mira",
        story_id=STORY_ID,
        name="Mira",
        type=EntryType.CHARACTER,
        description="A tavern keeper.",
        state=CharacterEntryState(is_present=True, current_disposition="friendly"),
    )


@pytest.fixture
def allied_faction():
    return Entry(
        id="fac-guard",
        story_id=STORY_ID,
        name="City Guard",
        type=EntryType.FACTION,
        description="Keepers of the peace.",
        state=FactionEntryState(status="allied"),
    )
