"""
Projection of live-tracked world state into entry-shaped records.

Active characters, the current location and carried items are mirrored as
synthetic entries so the tier logic can treat them uniformly. Their ids carry
a ``live-`` prefix; they are never written back to the entry store and never
recorded as activations.
"""

from ..state.schema import (
    Character,
    CharacterEntryState,
    Entry,
    EntryCreator,
    EntryInjection,
    EntryType,
    InjectionMode,
    Item,
    ItemEntryState,
    LiveWorldState,
    Location,
    LocationEntryState,
    Relationship,
)

LIVE_ID_PREFIX = "live-"

LIVE_CHARACTER_PRIORITY = 95
LIVE_LOCATION_PRIORITY = 100
LIVE_ITEM_PRIORITY = 80


def is_live_entry(entry: Entry | str) -> bool:
    """True for synthetic entries projected from live state."""
    entry_id = entry if isinstance(entry, str) else entry.id
    return entry_id.startswith(LIVE_ID_PREFIX)


def character_to_entry(char: Character) -> Entry:
    return Entry(
        id=f"{LIVE_ID_PREFIX}char-{char.id}",
        story_id=char.story_id,
        name=char.name,
        type=EntryType.CHARACTER,
        description=char.description or "",
        state=CharacterEntryState(
            is_present=char.status == "active",
            current_disposition=char.relationship,
            relationship=Relationship(status=char.relationship or "unknown"),
            known_facts=list(char.traits),
        ),
        injection=EntryInjection(mode=InjectionMode.ALWAYS, priority=LIVE_CHARACTER_PRIORITY),
        created_by=EntryCreator.AI,
    )


def location_to_entry(loc: Location) -> Entry:
    return Entry(
        id=f"{LIVE_ID_PREFIX}loc-{loc.id}",
        story_id=loc.story_id,
        name=loc.name,
        type=EntryType.LOCATION,
        description=loc.description or "",
        state=LocationEntryState(
            is_current_location=loc.current,
            visit_count=1 if loc.visited else 0,
        ),
        injection=EntryInjection(mode=InjectionMode.ALWAYS, priority=LIVE_LOCATION_PRIORITY),
        created_by=EntryCreator.AI,
    )


def item_to_entry(item: Item) -> Entry:
    """Mirror an item; quantity and equipped status go into the description."""
    description = item.description or ""
    if item.quantity > 1:
        description += f" (x{item.quantity})"
    if item.equipped:
        description += " [equipped]"

    return Entry(
        id=f"{LIVE_ID_PREFIX}item-{item.id}",
        story_id=item.story_id,
        name=item.name,
        type=EntryType.ITEM,
        description=description,
        state=ItemEntryState(
            in_inventory=item.in_inventory,
            current_location=item.location,
            condition="equipped" if item.equipped else None,
        ),
        injection=EntryInjection(mode=InjectionMode.ALWAYS, priority=LIVE_ITEM_PRIORITY),
        created_by=EntryCreator.AI,
    )


def project_live_state(
    live_state: LiveWorldState,
    character_priority: int = LIVE_CHARACTER_PRIORITY,
    location_priority: int = LIVE_LOCATION_PRIORITY,
    item_priority: int = LIVE_ITEM_PRIORITY,
) -> list[tuple[Entry, int, str]]:
    """
    Mirror the tier-1 qualifying live entities.

    Returns ``(entry, priority, reason)`` tuples in tier-1 order: active
    characters, then the current location, then inventory items.
    """
    projected: list[tuple[Entry, int, str]] = []

    for char in live_state.characters:
        if char.status == "active":
            projected.append((character_to_entry(char), character_priority, "active character"))

    for loc in live_state.locations:
        if loc.current:
            projected.append((location_to_entry(loc), location_priority, "current location"))

    for item in live_state.items:
        if item.in_inventory:
            projected.append((item_to_entry(item), item_priority, "in inventory"))

    return projected
