"""Apply the contact search schema migration to Postgres."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import asyncpg

from contact_search.core.config import Settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent.parent.parent.parent / "migrations"


async def run_migrations(settings: Settings | None = None) -> list[str]:
    """Run every ``*.sql`` file in the migrations directory, in name order."""
    settings = settings or Settings()
    files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not files:
        logger.warning("No migration files found in %s", MIGRATIONS_DIR)
        return []

    conn = await asyncpg.connect(settings.database_url)
    applied: list[str] = []
    try:
        for path in files:
            await conn.execute(path.read_text(encoding="utf-8"))
            logger.info("Applied %s", path.name)
            applied.append(path.name)
    finally:
        await conn.close()
    return applied


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(run_migrations())


if __name__ == "__main__":
    main()
