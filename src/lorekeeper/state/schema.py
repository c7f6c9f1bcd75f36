"""
Pydantic models for lorebook entries and live world state.

Entries are the unit of injectable world knowledge. Their dynamic state is a
tagged union keyed by the entry ``type``, so a character entry always carries
character state and so on.

JSON uses camelCase field names so lorebooks exported by the desktop app load
unchanged; Python code uses the snake_case attribute names.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


def generate_id() -> str:
    return str(uuid4())[:8]


class LoreModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class EntryType(str, Enum):
    CHARACTER = "character"
    LOCATION = "location"
    ITEM = "item"
    FACTION = "faction"
    CONCEPT = "concept"      # Magic systems, world rules
    EVENT = "event"


class InjectionMode(str, Enum):
    ALWAYS = "always"        # Tier 1 on every turn
    KEYWORD = "keyword"      # Tier 2 when a name/alias/keyword appears
    RELEVANT = "relevant"    # Left for keyword or LLM selection
    NEVER = "never"          # Never injected


class EntryCreator(str, Enum):
    USER = "user"
    AI = "ai"
    IMPORT = "import"


# -----------------------------------------------------------------------------
# Type-specific entry state
# -----------------------------------------------------------------------------

class RelationshipChange(LoreModel):
    description: str
    entry_id: str
    timestamp: datetime = Field(default_factory=datetime.now)


class Relationship(LoreModel):
    level: int = Field(default=0, ge=-100, le=100)
    status: str = "unknown"
    history: list[RelationshipChange] = Field(default_factory=list)


class CharacterEntryState(LoreModel):
    type: Literal["character"] = "character"
    is_present: bool = False
    last_seen_location: str | None = None
    current_disposition: str | None = None
    relationship: Relationship = Field(default_factory=Relationship)
    known_facts: list[str] = Field(default_factory=list)
    revealed_secrets: list[str] = Field(default_factory=list)


class LocationChange(LoreModel):
    description: str
    entry_id: str


class LocationEntryState(LoreModel):
    type: Literal["location"] = "location"
    is_current_location: bool = False
    visit_count: int = 0
    changes: list[LocationChange] = Field(default_factory=list)
    present_characters: list[str] = Field(default_factory=list)  # Entry IDs
    present_items: list[str] = Field(default_factory=list)       # Entry IDs


class ItemUse(LoreModel):
    action: str
    result: str
    entry_id: str


class ItemEntryState(LoreModel):
    type: Literal["item"] = "item"
    in_inventory: bool = False
    current_location: str | None = None  # Entry ID or "inventory"
    condition: str | None = None
    uses: list[ItemUse] = Field(default_factory=list)


class FactionEntryState(LoreModel):
    type: Literal["faction"] = "faction"
    player_standing: int = Field(default=0, ge=-100, le=100)
    status: Literal["allied", "neutral", "hostile", "unknown"] = "unknown"
    known_members: list[str] = Field(default_factory=list)


class ConceptEntryState(LoreModel):
    type: Literal["concept"] = "concept"
    revealed: bool = False
    comprehension_level: Literal["unknown", "basic", "intermediate", "advanced"] = "unknown"
    related_entries: list[str] = Field(default_factory=list)


class EventEntryState(LoreModel):
    type: Literal["event"] = "event"
    occurred: bool = False
    occurred_at: datetime | None = None
    witnesses: list[str] = Field(default_factory=list)
    consequences: list[str] = Field(default_factory=list)


EntryState = Annotated[
    Union[
        CharacterEntryState,
        LocationEntryState,
        ItemEntryState,
        FactionEntryState,
        ConceptEntryState,
        EventEntryState,
    ],
    Field(discriminator="type"),
]

STATE_MODELS: dict[EntryType, type[LoreModel]] = {
    EntryType.CHARACTER: CharacterEntryState,
    EntryType.LOCATION: LocationEntryState,
    EntryType.ITEM: ItemEntryState,
    EntryType.FACTION: FactionEntryState,
    EntryType.CONCEPT: ConceptEntryState,
    EntryType.EVENT: EventEntryState,
}


def default_state_for(entry_type: EntryType | str) -> LoreModel:
    """Build an empty state of the variant matching ``entry_type``."""
    return STATE_MODELS[EntryType(entry_type)]()


# -----------------------------------------------------------------------------
# Mode-specific state
# -----------------------------------------------------------------------------

class AdventureEntryState(LoreModel):
    discovered: bool = False
    interacted_with: bool = False
    notes: list[str] = Field(default_factory=list)


class CharacterArc(LoreModel):
    want: str | None = None      # External goal
    need: str | None = None      # Internal growth
    flaw: str | None = None
    current_state: str | None = None


class CreativeEntryState(LoreModel):
    arc: CharacterArc | None = None
    thematic_role: str | None = None
    symbolism: str | None = None


# -----------------------------------------------------------------------------
# Entry
# -----------------------------------------------------------------------------

class EntryInjection(LoreModel):
    """How an entry qualifies for prompt injection."""
    mode: InjectionMode = InjectionMode.KEYWORD
    keywords: list[str] = Field(default_factory=list)
    priority: int = 0  # Higher = inject first


class Entry(LoreModel):
    """A lorebook entry: static description plus tracked dynamic state."""
    id: str = Field(default_factory=generate_id)
    story_id: str = ""
    name: str
    type: EntryType

    # Static content
    description: str = ""
    hidden_info: str | None = None  # Never used for matching
    aliases: list[str] = Field(default_factory=list)

    # Dynamic state
    state: EntryState
    adventure_state: AdventureEntryState | None = None
    creative_state: CreativeEntryState | None = None

    injection: EntryInjection = Field(default_factory=EntryInjection)

    # Provenance
    first_mentioned: str | None = None  # Story entry ID
    last_mentioned: str | None = None
    mention_count: int = 0
    created_by: EntryCreator = EntryCreator.USER
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    lore_management_blacklisted: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fill_state(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("state") is None and "type" in data:
            data = dict(data)
            entry_type = data["type"]
            data["state"] = {"type": EntryType(entry_type).value}
        return data

    @model_validator(mode="after")
    def _state_matches_type(self) -> "Entry":
        if self.state.type != self.type.value:
            raise ValueError(
                f"state variant '{self.state.type}' does not match entry type '{self.type.value}'"
            )
        return self


# -----------------------------------------------------------------------------
# Story text and live world state
# -----------------------------------------------------------------------------

class StoryEntry(LoreModel):
    """One turn of story text (player action or narration)."""
    id: str = Field(default_factory=generate_id)
    story_id: str = ""
    type: Literal["user_action", "narration", "system", "retry"] = "narration"
    content: str
    parent_id: str | None = None
    position: int = 0
    created_at: datetime = Field(default_factory=datetime.now)


class Character(LoreModel):
    """Tracked character maintained by the story tracker."""
    id: str = Field(default_factory=generate_id)
    story_id: str = ""
    name: str
    description: str | None = None
    relationship: str | None = None
    traits: list[str] = Field(default_factory=list)
    status: Literal["active", "inactive", "deceased"] = "active"


class Location(LoreModel):
    """Tracked location. At most one is expected to be current."""
    id: str = Field(default_factory=generate_id)
    story_id: str = ""
    name: str
    description: str | None = None
    visited: bool = False
    current: bool = False
    connections: list[str] = Field(default_factory=list)


class Item(LoreModel):
    """Tracked item. ``location == "inventory"`` means the player carries it."""
    id: str = Field(default_factory=generate_id)
    story_id: str = ""
    name: str
    description: str | None = None
    quantity: int = 1
    equipped: bool = False
    location: str = "inventory"

    @property
    def in_inventory(self) -> bool:
        return self.location == "inventory"


class LiveWorldState(LoreModel):
    """Actively tracked entities for one story."""
    characters: list[Character] = Field(default_factory=list)
    locations: list[Location] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)
