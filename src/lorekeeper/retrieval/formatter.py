"""Formats retrieved entries into the lorebook block injected into prompts."""

from typing import TYPE_CHECKING, Sequence

from ..state.schema import CharacterEntryState, Entry, EntryType

if TYPE_CHECKING:
    from .classifier import RetrievedEntry


TRUNCATION_MARKER = "[...]"

BLOCK_HEADER = (
    "[LOREBOOK CONTEXT]\n"
    "(CANONICAL - All information below is established lore. Do not contradict these facts.)"
)

# Section order and headings in the rendered block
SECTION_TITLES: list[tuple[EntryType, str]] = [
    (EntryType.CHARACTER, "Characters"),
    (EntryType.LOCATION, "Locations"),
    (EntryType.ITEM, "Items"),
    (EntryType.FACTION, "Factions"),
    (EntryType.CONCEPT, "Lore"),
    (EntryType.EVENT, "Events"),
]


def truncate_words(text: str, max_words: int) -> str:
    """
    Cut ``text`` to ``max_words`` whitespace-separated words.

    0 means unlimited. Truncated text ends with `` [...]``.
    """
    if not max_words or max_words <= 0:
        return text
    trimmed = text.strip()
    if not trimmed:
        return text
    words = trimmed.split()
    if len(words) <= max_words:
        return text
    return f"{' '.join(words[:max_words])} {TRUNCATION_MARKER}"


class ContextBlockFormatter:
    """Groups entries by type and renders one line per entry."""

    def __init__(self, max_words_per_entry: int = 0):
        self.max_words_per_entry = max_words_per_entry

    def format_entry(self, entry: Entry) -> str:
        line = f"  - {entry.name}: {truncate_words(entry.description, self.max_words_per_entry)}"
        state = entry.state
        if isinstance(state, CharacterEntryState) and state.current_disposition:
            line += f" [{state.current_disposition}]"
        return line

    def format(
        self,
        tier1: Sequence["RetrievedEntry"],
        tier2: Sequence["RetrievedEntry"],
        tier3: Sequence["RetrievedEntry"],
    ) -> str:
        """
        Render the block, or "" when there is nothing to inject.

        An empty string means the block should be omitted from the prompt.
        """
        retrieved = [*tier1, *tier2, *tier3]
        if not retrieved:
            return ""

        by_type: dict[EntryType, list[Entry]] = {entry_type: [] for entry_type, _ in SECTION_TITLES}
        for item in retrieved:
            by_type[item.entry.type].append(item.entry)

        parts = [BLOCK_HEADER]
        for entry_type, title in SECTION_TITLES:
            entries = by_type[entry_type]
            if not entries:
                continue
            lines = [f"• {title}:"]
            lines.extend(self.format_entry(entry) for entry in entries)
            parts.append("\n".join(lines))

        return "\n\n" + "\n\n".join(parts)


def build_context_block(
    tier1: Sequence["RetrievedEntry"],
    tier2: Sequence["RetrievedEntry"],
    tier3: Sequence["RetrievedEntry"],
    max_words_per_entry: int = 0,
) -> str:
    """Shortcut for ``ContextBlockFormatter(max_words_per_entry).format(...)``."""
    return ContextBlockFormatter(max_words_per_entry).format(tier1, tier2, tier3)
