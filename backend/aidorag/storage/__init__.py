"""Persistence adapters: relational tables and uploaded file storage."""

from aidorag.storage.memory_store import InMemoryFileStorage, InMemoryStore
from aidorag.storage.supabase_store import SupabaseFileStorage, SupabaseStore

__all__ = [
    "InMemoryFileStorage",
    "InMemoryStore",
    "SupabaseFileStorage",
    "SupabaseStore",
]
