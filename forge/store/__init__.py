"""Persistence adapters for briefs, audit logs and deliberation rows.

Exports:
    - StoreProtocol: persistence boundary
    - BuildJournal: audit trail writer over a store
    - InMemoryStore: process-local store
    - PostgrestStore: Supabase/PostgREST REST store
    - create_store: backend selection from Settings
"""

from forge.core.config import Settings
from forge.store.journal import BuildJournal
from forge.store.memory import InMemoryStore
from forge.store.postgrest import PostgrestStore
from forge.store.protocols import StoreProtocol


def create_store(settings: Settings) -> StoreProtocol:
    """Build the store configured by ``settings.store_backend``."""
    if settings.store_backend == "postgrest":
        return PostgrestStore(
            base_url=settings.store_url,
            api_key=settings.store_api_key.get_secret_value(),
            timeout=settings.store_timeout_seconds,
        )
    return InMemoryStore()


__all__ = [
    "BuildJournal",
    "InMemoryStore",
    "PostgrestStore",
    "StoreProtocol",
    "create_store",
]
