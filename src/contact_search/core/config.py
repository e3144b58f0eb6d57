"""Configuration via environment variables.

Same pattern as the rest of the stack: individual POSTGRES_* variables,
plus SUPABASE_* for the REST backend.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- Database ---
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "postgres"
    postgres_user: str = "postgres"
    postgres_password: str = ""

    # SQLite fallback for local dev (set USE_SQLITE=true)
    use_sqlite: bool = False
    sqlite_path: str = "contacts.db"

    # Supabase REST (PostgREST). Used when set and USE_SQLITE is off.
    supabase_url: str = ""
    supabase_service_key: str = ""
    http_timeout_seconds: float = 30.0
    postgrest_max_url_length: int = 8000

    @property
    def database_url(self) -> str:
        if self.use_sqlite:
            return f"sqlite:///{self.sqlite_path}"
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def backend_name(self) -> str:
        if self.use_sqlite:
            return "sqlite"
        if self.supabase_url:
            return "postgrest"
        return "postgres"

    # --- Search tunables ---
    # PostgREST encodes `in.(...)` filters into the request line. A UUID is
    # 36 chars plus a separator, so 40 ids is ~1.5KB of filter, leaving room
    # for the projection and the other filters under common proxy limits
    # (8KB request line). Revisit together with the store's limit.
    search_chunk_size: int = 40
    search_single_query_limit: int = 500
    search_chunk_query_limit: int = 1000
    search_max_concurrent_chunks: int = 8
    outreach_log_scan_limit: int = 50000

    # Campaign cooldown warnings
    default_company_cooldown_days: int = 30
    recent_send_limit: int = 200

    # --- Server ---
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "info"
    reload: bool = False

    model_config = {"env_prefix": ""}
