"""Store factory - selects backend based on configuration."""

from __future__ import annotations

from contact_search.core.config import Settings
from contact_search.core.store import ContactStore


def create_database(settings: Settings | None = None) -> ContactStore:
    """Return the appropriate store backend.

    - use_sqlite=True uses the aiosqlite backend.
    - supabase_url set uses the Supabase REST (PostgREST) backend.
    - Otherwise uses the asyncpg PostgreSQL backend.
    """
    s = settings or Settings()
    if s.use_sqlite:
        from contact_search.core.database import Database
        return Database(s)
    if s.supabase_url:
        from contact_search.core.postgrest import PostgrestStore
        return PostgrestStore(s)
    from contact_search.core.database_pg import PostgresDatabase
    return PostgresDatabase(s)
