"""Data access for the achievement engine"""
from achievement_engine.db.store import DataStore
from achievement_engine.db.memory_store import MemoryStore

__all__ = ["DataStore", "MemoryStore"]
