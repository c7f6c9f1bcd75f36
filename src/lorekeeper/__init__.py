"""Lorekeeper: tiered lorebook retrieval for interactive fiction."""

__version__ = "0.1.0"
