"""Contact store - PostgreSQL backend (asyncpg).

Direct connection to the Supabase Postgres instance through a connection pool.
Id lists travel as array parameters (``= ANY($n)``).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import asyncpg

from contact_search.core.config import Settings
from contact_search.core.models import (
    Campaign,
    CompanyRef,
    ContactQuery,
    ContactResult,
    RecentSend,
)
from contact_search.core.store import (
    CATCH_ALL_EMAIL_TYPE,
    CONTACT_COLUMNS,
    CONVERTED_STATUS,
    ContactStore,
    DataAccessError,
)


def _row_to_contact(row: asyncpg.Record) -> ContactResult:
    d = dict(row)
    company_id = d.pop("company_ref_id")
    company_name = d.pop("company_ref_name")
    company = CompanyRef(id=company_id, name=company_name) if company_id else None
    return ContactResult(**d, company=company)


def _to_data_access_error(e: asyncpg.PostgresError) -> DataAccessError:
    return DataAccessError(
        getattr(e, "message", None) or str(e),
        detail=getattr(e, "detail", None),
        hint=getattr(e, "hint", None),
    )


class _Params:
    """Collects positional parameters and hands out ``$n`` placeholders."""

    def __init__(self) -> None:
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def build_contact_filters(
    query: ContactQuery, company_ids: list[str] | None, params: _Params
) -> list[str]:
    where: list[str] = []

    if company_ids is not None:
        where.append(f"c.company_id::text = ANY({params.add(list(company_ids))}::text[])")
    if query.has_email:
        where.append("c.email IS NOT NULL")
    if query.include_ids is not None:
        where.append(f"c.id::text = ANY({params.add(list(query.include_ids))}::text[])")
    if query.exclude_ids:
        where.append(f"NOT (c.id::text = ANY({params.add(list(query.exclude_ids))}::text[]))")
    if query.status:
        where.append(f"c.outreach_status = {params.add(query.status)}")
    if query.converted == "only":
        where.append(f"c.outreach_status = {params.add(CONVERTED_STATUS)}")
    elif query.converted == "exclude":
        where.append(f"c.outreach_status <> {params.add(CONVERTED_STATUS)}")
    if query.catch_all == "only":
        where.append(f"c.email_type = {params.add(CATCH_ALL_EMAIL_TYPE)}")
    elif query.catch_all == "exclude":
        where.append(f"c.email_type IS DISTINCT FROM {params.add(CATCH_ALL_EMAIL_TYPE)}")
    if query.seniority:
        where.append(f"c.seniority = {params.add(query.seniority)}")
    if query.search:
        term = params.add(f"%{query.search}%")
        where.append(
            f"(c.first_name ILIKE {term} OR c.last_name ILIKE {term} OR c.email ILIKE {term})"
        )
    if query.title_search:
        where.append(f"c.title ILIKE {params.add(f'%{query.title_search}%')}")

    return where


class PostgresDatabase(ContactStore):
    """Async PostgreSQL contact store."""

    backend_name = "postgres"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        self._pool = await asyncpg.create_pool(
            self.settings.database_url, min_size=2, max_size=10,
        )

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    async def _fetch(self, sql: str, *args: Any) -> list[asyncpg.Record]:
        try:
            return await self.pool.fetch(sql, *args)
        except asyncpg.PostgresError as e:
            raise _to_data_access_error(e) from e
        except (OSError, asyncpg.InterfaceError) as e:
            raise DataAccessError(str(e), detail=type(e).__name__) from e

    # -----------------------------------------------------------------------
    # Search primitives
    # -----------------------------------------------------------------------

    async def outreach_contact_ids(self, since: date | None, limit: int) -> list[str]:
        if since is None:
            rows = await self._fetch(
                "SELECT contact_id::text AS contact_id FROM outreach_log LIMIT $1", limit
            )
        else:
            rows = await self._fetch(
                "SELECT contact_id::text AS contact_id FROM outreach_log "
                "WHERE date >= $1 LIMIT $2",
                since, limit,
            )
        return [r["contact_id"] for r in rows]

    async def event_company_ids(self, event_id: str) -> list[str]:
        rows = await self._fetch(
            "SELECT company_id::text AS company_id FROM event_companies "
            "WHERE event_id::text = $1",
            event_id,
        )
        return [r["company_id"] for r in rows]

    async def category_company_ids(
        self, category: str | None, edge_category: str | None
    ) -> list[str]:
        params = _Params()
        where: list[str] = []
        if category:
            where.append(f"category = {params.add(category)}")
        if edge_category:
            where.append(f"edge_categories @> ARRAY[{params.add(edge_category)}]::text[]")
        clause = "WHERE " + " AND ".join(where) if where else ""
        rows = await self._fetch(
            f"SELECT id::text AS id FROM companies {clause}", *params.values
        )
        return [r["id"] for r in rows]

    async def query_contacts(
        self,
        query: ContactQuery,
        company_ids: list[str] | None,
        limit: int,
    ) -> list[ContactResult]:
        params = _Params()
        where = build_contact_filters(query, company_ids, params)
        clause = "WHERE " + " AND ".join(where) if where else ""
        columns = ", ".join(
            f"c.{col}::text AS {col}" if col in ("id", "company_id") else f"c.{col}"
            for col in CONTACT_COLUMNS
        )
        sql = f"""
            SELECT {columns}, co.id::text AS company_ref_id, co.name AS company_ref_name
            FROM contacts c
            LEFT JOIN companies co ON co.id = c.company_id
            {clause}
            ORDER BY c.last_name ASC
            LIMIT {params.add(limit)}
        """
        rows = await self._fetch(sql, *params.values)
        return [_row_to_contact(r) for r in rows]

    async def get_campaign(self, campaign_id: str) -> Campaign | None:
        rows = await self._fetch(
            "SELECT id::text AS id, name, company_cooldown_days FROM campaigns "
            "WHERE id::text = $1",
            campaign_id,
        )
        return Campaign(**dict(rows[0])) if rows else None

    async def recent_sends(
        self, company_ids: list[str], since: datetime, limit: int
    ) -> list[RecentSend]:
        rows = await self._fetch(
            """
            SELECT r.company_id::text AS company_id, r.sent_at, ca.name AS campaign_name
            FROM campaign_recipients r
            LEFT JOIN campaigns ca ON ca.id = r.campaign_id
            WHERE r.company_id::text = ANY($1::text[])
            AND r.sent_at IS NOT NULL
            AND r.sent_at >= $2
            ORDER BY r.sent_at DESC
            LIMIT $3
            """,
            list(company_ids), since, limit,
        )
        return [RecentSend(**dict(r)) for r in rows]
