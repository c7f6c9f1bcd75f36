"""
Retrieval configuration.

``RetrievalConfig`` is passed explicitly to the retrieval service; there is no
global settings store. User-facing knobs persist in a small JSON settings
file and are turned into a config with ``RetrievalConfig.from_settings``.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypedDict

from .state.schema import EntryType

logger = logging.getLogger(__name__)

MAX_WORDS_PER_ENTRY_LIMIT = 500
DEFAULT_TIER3_MODEL = "x-ai/grok-4.1-fast"


def clamp_max_words(value: object) -> int:
    """Clamp a max-words setting to [0, 500]; anything non-numeric is 0 (unlimited)."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return min(max(0, math.floor(number)), MAX_WORDS_PER_ENTRY_LIMIT)


@dataclass(frozen=True)
class TierPriorities:
    """Base priorities for every tier-1/2/3 inclusion reason."""
    live_location: int = 100
    live_character: int = 95
    live_item: int = 80
    always: int = 90
    state_character_present: int = 85
    state_current_location: int = 90
    state_in_inventory: int = 75
    state_faction_stance: int = 70
    sticky_base: int = 60
    sticky_span: int = 20
    keyword_base: int = 70   # Plus entry priority
    llm_base: int = 50       # Plus entry priority


def _default_stickiness() -> dict[EntryType, int]:
    from .retrieval.activation import STICKINESS_BY_TYPE
    return dict(STICKINESS_BY_TYPE)


@dataclass
class RetrievalConfig:
    """Knobs for one retrieval service instance."""
    max_tier3_entries: int = 0        # 0 = unlimited
    max_words_per_entry: int = 0      # 0 = unlimited
    enable_llm_selection: bool = True
    recent_entries_count: int = 5
    tier3_model: str = DEFAULT_TIER3_MODEL
    temperature: float = 0.2
    max_tokens: int = 500
    selection_timeout: float = 30.0   # Seconds
    stickiness: dict[EntryType, int] = field(default_factory=_default_stickiness)
    priorities: TierPriorities = field(default_factory=TierPriorities)

    def __post_init__(self) -> None:
        self.max_words_per_entry = clamp_max_words(self.max_words_per_entry)
        self.max_tier3_entries = max(0, int(self.max_tier3_entries))
        self.recent_entries_count = max(0, int(self.recent_entries_count))

    def decay_window(self, entry_type: EntryType) -> int:
        return self.stickiness.get(EntryType(entry_type), 0)

    @classmethod
    def from_settings(cls, settings: "RetrievalSettings") -> "RetrievalConfig":
        """Build a config from persisted user settings, falling back to defaults."""
        merged = DEFAULT_SETTINGS.copy()
        merged.update(settings)
        return cls(
            max_tier3_entries=merged["max_tier3_entries"],
            max_words_per_entry=merged["max_words_per_entry"],
            enable_llm_selection=merged["enable_llm_selection"],
            recent_entries_count=merged["recent_entries_count"],
            tier3_model=merged["tier3_model"],
            temperature=merged["temperature"],
        )


# -----------------------------------------------------------------------------
# Persisted user settings
# -----------------------------------------------------------------------------

class RetrievalSettings(TypedDict, total=False):
    """User-editable retrieval settings."""
    max_tier3_entries: int
    max_words_per_entry: int
    enable_llm_selection: bool
    recent_entries_count: int
    tier3_model: str
    temperature: float


DEFAULT_SETTINGS: RetrievalSettings = {
    "max_tier3_entries": 0,
    "max_words_per_entry": 0,
    "enable_llm_selection": True,
    "recent_entries_count": 5,
    "tier3_model": DEFAULT_TIER3_MODEL,
    "temperature": 0.2,
}


def get_settings_path(data_dir: Path | str = "data") -> Path:
    return Path(data_dir) / ".lorekeeper_settings.json"


def load_settings(data_dir: Path | str = "data") -> RetrievalSettings:
    """Load settings from file, or return defaults if missing or unreadable."""
    path = get_settings_path(data_dir)

    if not path.exists():
        return DEFAULT_SETTINGS.copy()

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        settings = DEFAULT_SETTINGS.copy()
        settings.update({k: v for k, v in saved.items() if k in DEFAULT_SETTINGS})
        return settings
    except (json.JSONDecodeError, IOError, AttributeError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return DEFAULT_SETTINGS.copy()


def save_settings(settings: RetrievalSettings, data_dir: Path | str = "data") -> bool:
    """Save settings to file. Returns True on success."""
    path = get_settings_path(data_dir)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(settings, f, indent=2)
        return True
    except IOError as e:
        logger.warning("Could not save settings to %s: %s", path, e)
        return False
