"""
Lorebook and activation storage.

Separates persistence from retrieval logic for testability. The retrieval
engine only reads entries; activation state is saved between sessions so
stickiness survives a restart.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import Field, TypeAdapter, ValidationError

from .schema import Entry, LoreModel

if TYPE_CHECKING:
    from ..retrieval.activation import SimpleActivationTracker

logger = logging.getLogger(__name__)

_ENTRY_LIST = TypeAdapter(list[Entry])


# -----------------------------------------------------------------------------
# Entries
# -----------------------------------------------------------------------------

@runtime_checkable
class EntryStore(Protocol):
    """
    Read access to lorebook entries.

    Implementations:
    - JsonEntryStore: One JSON file per story (production)
    - MemoryEntryStore: In-memory storage (testing)
    """

    def load_entries(self, story_id: str) -> list[Entry]:
        """All entries for a story. Empty if the story has none."""
        ...

    def get_entry(self, story_id: str, entry_id: str) -> Entry | None:
        """Load one entry by ID. Returns None if not found."""
        ...

    def list_stories(self) -> list[str]:
        """IDs of stories that have a lorebook."""
        ...


class JsonEntryStore:
    """
    File-based lorebook storage.

    Each story's lorebook is ``<story_id>.json`` holding a JSON list of
    entries (camelCase keys, as exported by the desktop app).
    """

    def __init__(self, lorebook_dir: Path | str = "lorebooks"):
        self.lorebook_dir = Path(lorebook_dir)
        self.lorebook_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, story_id: str) -> Path:
        return self.lorebook_dir / f"{story_id}.json"

    def load_entries(self, story_id: str) -> list[Entry]:
        """
        Load a story's lorebook.

        Raises:
            ValidationError: the file exists but does not hold valid entries
        """
        lorebook_file = self._path(story_id)
        if not lorebook_file.exists():
            return []
        return _ENTRY_LIST.validate_json(lorebook_file.read_text(encoding="utf-8"))

    def get_entry(self, story_id: str, entry_id: str) -> Entry | None:
        for entry in self.load_entries(story_id):
            if entry.id == entry_id:
                return entry
        return None

    def list_stories(self) -> list[str]:
        return sorted(
            f.stem for f in self.lorebook_dir.glob("*.json")
            if not f.name.startswith(".")
        )

    def save_entries(self, story_id: str, entries: list[Entry]) -> None:
        """Write a lorebook file. Used by importers and fixtures, never by retrieval."""
        self._path(story_id).write_text(
            _ENTRY_LIST.dump_json(entries, by_alias=True, indent=2).decode("utf-8"),
            encoding="utf-8",
        )


class MemoryEntryStore:
    """
    In-memory lorebook storage for testing.

    No file I/O - all data lives in memory.
    """

    def __init__(self):
        self.entries: dict[str, list[Entry]] = {}

    def add(self, *entries: Entry) -> None:
        """Add entries, filed under each entry's ``story_id``."""
        for entry in entries:
            self.entries.setdefault(entry.story_id, []).append(entry)

    def load_entries(self, story_id: str) -> list[Entry]:
        return list(self.entries.get(story_id, []))

    def get_entry(self, story_id: str, entry_id: str) -> Entry | None:
        for entry in self.entries.get(story_id, []):
            if entry.id == entry_id:
                return entry
        return None

    def list_stories(self) -> list[str]:
        return sorted(self.entries)


# -----------------------------------------------------------------------------
# Activations
# -----------------------------------------------------------------------------

class ActivationRecord(LoreModel):
    """Persisted activation state for one story."""
    story_id: str
    activation_data: dict[str, int] = Field(default_factory=dict)
    story_position: int = 0

    @classmethod
    def from_tracker(cls, story_id: str, tracker: "SimpleActivationTracker") -> "ActivationRecord":
        return cls(
            story_id=story_id,
            activation_data=tracker.get_activation_data(),
            story_position=tracker.current_position,
        )

    def to_tracker(self) -> "SimpleActivationTracker":
        from ..retrieval.activation import SimpleActivationTracker

        tracker = SimpleActivationTracker(current_position=self.story_position)
        tracker.load_activation_data(self.activation_data)
        return tracker


@runtime_checkable
class ActivationStore(Protocol):
    """
    Storage for activation trackers, keyed by story.

    Implementations:
    - JsonActivationStore: File-based persistence (production)
    - MemoryActivationStore: In-memory storage (testing)
    """

    def save(self, story_id: str, tracker: "SimpleActivationTracker") -> None:
        """Persist a story's tracker state."""
        ...

    def load(self, story_id: str) -> "SimpleActivationTracker | None":
        """Restore a tracker. Returns None if nothing was saved."""
        ...

    def delete(self, story_id: str) -> bool:
        """Delete saved state. Returns True if deleted."""
        ...


class JsonActivationStore:
    """
    File-based activation storage.

    Features:
    - Automatic backup on save
    - Corrupt files load as None instead of failing the turn
    """

    def __init__(self, data_dir: Path | str = "."):
        self.activations_dir = Path(data_dir) / "activations"
        self.activations_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, story_id: str) -> Path:
        return self.activations_dir / f"{story_id}.json"

    def save(self, story_id: str, tracker: "SimpleActivationTracker") -> None:
        """Save tracker state to JSON with backup."""
        activation_file = self._path(story_id)

        # Backup previous save
        if activation_file.exists():
            backup = activation_file.with_suffix(".json.bak")
            backup.write_text(activation_file.read_text(encoding="utf-8"), encoding="utf-8")

        record = ActivationRecord.from_tracker(story_id, tracker)
        activation_file.write_text(record.model_dump_json(by_alias=True, indent=2), encoding="utf-8")

    def load(self, story_id: str) -> "SimpleActivationTracker | None":
        activation_file = self._path(story_id)
        if not activation_file.exists():
            return None

        try:
            record = ActivationRecord.model_validate_json(activation_file.read_text(encoding="utf-8"))
        except (ValidationError, UnicodeDecodeError) as e:
            logger.warning("Ignoring corrupt activation file %s: %s", activation_file, e)
            return None

        if record.story_id != story_id:
            logger.warning(
                "Activation file %s belongs to story %s, not %s",
                activation_file, record.story_id, story_id,
            )
            return None

        return record.to_tracker()

    def delete(self, story_id: str) -> bool:
        activation_file = self._path(story_id)
        if activation_file.exists():
            activation_file.unlink()
            return True
        return False


class MemoryActivationStore:
    """In-memory activation storage for testing."""

    def __init__(self):
        self.records: dict[str, ActivationRecord] = {}

    def save(self, story_id: str, tracker: "SimpleActivationTracker") -> None:
        # Stored as a record so later tracker mutations don't leak in
        self.records[story_id] = ActivationRecord.from_tracker(story_id, tracker)

    def load(self, story_id: str) -> "SimpleActivationTracker | None":
        record = self.records.get(story_id)
        if record is None:
            return None
        return record.to_tracker()

    def delete(self, story_id: str) -> bool:
        if story_id in self.records:
            del self.records[story_id]
            return True
        return False
