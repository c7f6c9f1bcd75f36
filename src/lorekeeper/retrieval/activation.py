"""
Activation tracking for lorebook stickiness.

Records the story position at which each entry was last activated (matched
or selected). Recently activated entries stay in tier 1 for a type-specific
number of turns, fading in priority as the window runs out.
"""

import logging
from typing import Protocol, runtime_checkable

from ..state.schema import EntryType

logger = logging.getLogger(__name__)


# Turns an entry stays sticky after activation. A new activation resets it.
STICKINESS_BY_TYPE: dict[EntryType, int] = {
    EntryType.CONCEPT: 5,    # World rules are foundational context
    EntryType.FACTION: 4,    # Faction dynamics persist during dealings
    EntryType.CHARACTER: 3,
    EntryType.LOCATION: 3,
    EntryType.EVENT: 2,      # Historical references fade quickly
    EntryType.ITEM: 2,       # Items are situational
}

DEFAULT_PRUNE_HORIZON = 10


def sticky_priority(
    turns_since: int,
    window: int,
    base: int = 60,
    span: int = 20,
) -> int:
    """
    Priority of a sticky entry ``turns_since`` turns after activation.

    Fades linearly from just under ``base + span`` toward ``base``.
    Uses half-up rounding on the exact fade value.
    """
    fade_ratio = 1 - turns_since / (window + 1)
    return int(base + fade_ratio * span + 0.5)


@runtime_checkable
class ActivationTracker(Protocol):
    """Anything that can answer "when was this entry last activated?"."""

    current_position: int

    def get_last_activation(self, entry_id: str) -> int | None:
        """Position of the last activation, or None if never activated."""
        ...

    def record_activation(self, entry_id: str, position: int) -> None:
        """Record an activation at ``position``."""
        ...


class SimpleActivationTracker:
    """
    In-memory activation tracker.

    Positions are monotonic per entry: recording an older position than the
    one already stored keeps the newer one. Stale records linger until
    ``prune_old_activations`` is called.
    """

    def __init__(self, current_position: int = 0):
        self.current_position = current_position
        self._activations: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._activations)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._activations

    def get_last_activation(self, entry_id: str) -> int | None:
        return self._activations.get(entry_id)

    def record_activation(self, entry_id: str, position: int) -> None:
        previous = self._activations.get(entry_id)
        if previous is not None and previous > position:
            return
        self._activations[entry_id] = position

    def set_position(self, position: int) -> None:
        """Update the current story position (call once per turn)."""
        self.current_position = position

    def advance(self, turns: int = 1) -> int:
        """Move the story position forward and return the new position."""
        self.current_position += turns
        return self.current_position

    def turns_since_activation(self, entry_id: str) -> int | None:
        last = self._activations.get(entry_id)
        if last is None:
            return None
        return self.current_position - last

    def prune_old_activations(self, max_stickiness: int = DEFAULT_PRUNE_HORIZON) -> int:
        """
        Drop activations older than ``max_stickiness`` turns.

        Returns the number of records removed.
        """
        stale = [
            entry_id
            for entry_id, position in self._activations.items()
            if self.current_position - position > max_stickiness
        ]
        for entry_id in stale:
            del self._activations[entry_id]
        if stale:
            logger.debug("Pruned %d stale activations at position %d", len(stale), self.current_position)
        return len(stale)

    # -------------------------------------------------------------------------
    # Persistence helpers
    # -------------------------------------------------------------------------

    def get_activation_data(self) -> dict[str, int]:
        """Plain id -> position mapping for persistence."""
        return dict(self._activations)

    def load_activation_data(self, data: dict[str, int]) -> None:
        """Replace all activations with ``data``."""
        self._activations = {str(k): int(v) for k, v in data.items()}

    def snapshot(self) -> dict:
        """Capture tracker state (e.g. before a turn that may be retried)."""
        return {
            "activation_data": self.get_activation_data(),
            "story_position": self.current_position,
        }

    def restore(self, snapshot: dict) -> None:
        """Roll back to a state captured by ``snapshot``."""
        self.load_activation_data(snapshot.get("activation_data", {}))
        self.current_position = snapshot.get("story_position", 0)
