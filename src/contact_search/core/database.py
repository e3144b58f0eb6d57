"""Contact store - SQLite backend.

Zero-install backend using aiosqlite, for local development and tests.
Auto-creates schema on connect.
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import date, datetime
from typing import Any

import aiosqlite

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


# ---------------------------------------------------------------------------
# SQLite schema (auto-created on first connect)
# ---------------------------------------------------------------------------

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS companies (
    id                  TEXT PRIMARY KEY,
    name                TEXT,
    category            TEXT,
    edge_categories     TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS contacts (
    id                  TEXT PRIMARY KEY,
    company_id          TEXT REFERENCES companies(id) ON DELETE SET NULL,
    first_name          TEXT,
    last_name           TEXT,
    email               TEXT,
    email_type          TEXT,
    title               TEXT,
    seniority           TEXT,
    outreach_status     TEXT,
    created_at          TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_contacts_company ON contacts(company_id);
CREATE INDEX IF NOT EXISTS idx_contacts_last_name ON contacts(last_name);

CREATE TABLE IF NOT EXISTS outreach_log (
    id                  TEXT PRIMARY KEY,
    contact_id          TEXT NOT NULL REFERENCES contacts(id) ON DELETE CASCADE,
    date                TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_outreach_log_date ON outreach_log(date);

CREATE TABLE IF NOT EXISTS event_companies (
    event_id            TEXT NOT NULL,
    company_id          TEXT NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
    PRIMARY KEY (event_id, company_id)
);

CREATE TABLE IF NOT EXISTS campaigns (
    id                  TEXT PRIMARY KEY,
    name                TEXT,
    company_cooldown_days INTEGER
);

CREATE TABLE IF NOT EXISTS campaign_recipients (
    id                  TEXT PRIMARY KEY,
    campaign_id         TEXT NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
    contact_id          TEXT,
    company_id          TEXT,
    sent_at             TEXT
);

CREATE INDEX IF NOT EXISTS idx_campaign_recipients_company ON campaign_recipients(company_id);
"""


def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
    """Convert sqlite3.Row to a plain dict."""
    return {k: row[k] for k in row.keys()}


def _row_to_contact(row: sqlite3.Row) -> ContactResult:
    d = _row_to_dict(row)
    company_id = d.pop("company_ref_id")
    company_name = d.pop("company_ref_name")
    company = CompanyRef(id=company_id, name=company_name) if company_id else None
    return ContactResult(**d, company=company)


def _json_ids(ids: list[str]) -> str:
    # Bound as one parameter and expanded with json_each, so id lists of any
    # size stay clear of SQLite's host-parameter limit.
    return json.dumps(list(ids))


def build_contact_filters(
    query: ContactQuery, company_ids: list[str] | None
) -> tuple[list[str], list[Any]]:
    """WHERE clauses and params for a contact query, in placeholder order."""
    where: list[str] = []
    params: list[Any] = []

    if company_ids is not None:
        where.append("c.company_id IN (SELECT value FROM json_each(?))")
        params.append(_json_ids(company_ids))
    if query.has_email:
        where.append("c.email IS NOT NULL")
    if query.include_ids is not None:
        where.append("c.id IN (SELECT value FROM json_each(?))")
        params.append(_json_ids(query.include_ids))
    if query.exclude_ids:
        where.append("c.id NOT IN (SELECT value FROM json_each(?))")
        params.append(_json_ids(query.exclude_ids))
    if query.status:
        where.append("c.outreach_status = ?")
        params.append(query.status)
    if query.converted == "only":
        where.append("c.outreach_status = ?")
        params.append(CONVERTED_STATUS)
    elif query.converted == "exclude":
        where.append("c.outreach_status != ?")
        params.append(CONVERTED_STATUS)
    if query.catch_all == "only":
        where.append("c.email_type = ?")
        params.append(CATCH_ALL_EMAIL_TYPE)
    elif query.catch_all == "exclude":
        where.append("(c.email_type IS NULL OR c.email_type != ?)")
        params.append(CATCH_ALL_EMAIL_TYPE)
    if query.seniority:
        where.append("c.seniority = ?")
        params.append(query.seniority)
    if query.search:
        where.append(
            "(LOWER(c.first_name) LIKE ? OR LOWER(c.last_name) LIKE ? "
            "OR LOWER(c.email) LIKE ?)"
        )
        term = f"%{query.search.lower()}%"
        params.extend([term, term, term])
    if query.title_search:
        where.append("LOWER(c.title) LIKE ?")
        params.append(f"%{query.title_search.lower()}%")

    return where, params


# ---------------------------------------------------------------------------
# Database class
# ---------------------------------------------------------------------------


class Database(ContactStore):
    """Async SQLite contact store."""

    backend_name = "sqlite"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()
        self._conn: aiosqlite.Connection | None = None

    def _resolve_path(self) -> str:
        url = self.settings.database_url
        if url.startswith("sqlite:///"):
            return url[len("sqlite:///"):]
        if url.startswith("sqlite://"):
            return url[len("sqlite://"):]
        return url

    async def connect(self) -> None:
        path = self._resolve_path()
        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = sqlite3.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._init_schema()

    async def _init_schema(self) -> None:
        """Auto-create tables if they don't exist."""
        await self.conn.executescript(SCHEMA_SQL)
        await self.conn.commit()

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._conn

    async def _fetchall(self, sql: str, params: list[Any] | tuple = ()) -> list[sqlite3.Row]:
        try:
            cursor = await self.conn.execute(sql, params)
            return list(await cursor.fetchall())
        except sqlite3.Error as e:
            raise DataAccessError(str(e), detail=type(e).__name__) from e

    # -----------------------------------------------------------------------
    # Search primitives
    # -----------------------------------------------------------------------

    async def outreach_contact_ids(self, since: date | None, limit: int) -> list[str]:
        if since is None:
            rows = await self._fetchall(
                "SELECT contact_id FROM outreach_log LIMIT ?", (limit,)
            )
        else:
            rows = await self._fetchall(
                "SELECT contact_id FROM outreach_log WHERE date >= ? LIMIT ?",
                (since.isoformat(), limit),
            )
        return [r["contact_id"] for r in rows]

    async def event_company_ids(self, event_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT company_id FROM event_companies WHERE event_id = ?", (event_id,)
        )
        return [r["company_id"] for r in rows]

    async def category_company_ids(
        self, category: str | None, edge_category: str | None
    ) -> list[str]:
        where: list[str] = []
        params: list[Any] = []
        if category:
            where.append("category = ?")
            params.append(category)
        if edge_category:
            where.append(
                "EXISTS (SELECT 1 FROM json_each(companies.edge_categories) WHERE value = ?)"
            )
            params.append(edge_category)
        clause = "WHERE " + " AND ".join(where) if where else ""
        rows = await self._fetchall(f"SELECT id FROM companies {clause}", params)
        return [r["id"] for r in rows]

    async def query_contacts(
        self,
        query: ContactQuery,
        company_ids: list[str] | None,
        limit: int,
    ) -> list[ContactResult]:
        where, params = build_contact_filters(query, company_ids)
        clause = "WHERE " + " AND ".join(where) if where else ""
        columns = ", ".join(f"c.{col}" for col in CONTACT_COLUMNS)
        rows = await self._fetchall(
            f"""
            SELECT {columns}, co.id AS company_ref_id, co.name AS company_ref_name
            FROM contacts c
            LEFT JOIN companies co ON co.id = c.company_id
            {clause}
            ORDER BY c.last_name ASC
            LIMIT ?
            """,
            params + [limit],
        )
        return [_row_to_contact(r) for r in rows]

    async def get_campaign(self, campaign_id: str) -> Campaign | None:
        rows = await self._fetchall(
            "SELECT id, name, company_cooldown_days FROM campaigns WHERE id = ?",
            (campaign_id,),
        )
        return Campaign(**_row_to_dict(rows[0])) if rows else None

    async def recent_sends(
        self, company_ids: list[str], since: datetime, limit: int
    ) -> list[RecentSend]:
        rows = await self._fetchall(
            """
            SELECT r.company_id, r.sent_at, ca.name AS campaign_name
            FROM campaign_recipients r
            LEFT JOIN campaigns ca ON ca.id = r.campaign_id
            WHERE r.company_id IN (SELECT value FROM json_each(?))
            AND r.sent_at IS NOT NULL
            AND r.sent_at >= ?
            ORDER BY r.sent_at DESC
            LIMIT ?
            """,
            (_json_ids(company_ids), since.isoformat(), limit),
        )
        return [RecentSend(**_row_to_dict(r)) for r in rows]

    # -----------------------------------------------------------------------
    # Seeding helpers (local dev and tests)
    # -----------------------------------------------------------------------

    async def create_company(
        self,
        name: str | None = None,
        category: str | None = None,
        edge_categories: list[str] | None = None,
        id: str | None = None,
    ) -> str:
        company_id = id or str(uuid.uuid4())
        await self.conn.execute(
            "INSERT INTO companies (id, name, category, edge_categories) VALUES (?, ?, ?, ?)",
            (company_id, name, category, json.dumps(edge_categories or [])),
        )
        await self.conn.commit()
        return company_id

    async def create_contact(self, contact: ContactResult) -> ContactResult:
        values = contact.model_dump(include=set(CONTACT_COLUMNS))
        placeholders = ", ".join("?" for _ in CONTACT_COLUMNS)
        await self.conn.execute(
            f"INSERT INTO contacts ({', '.join(CONTACT_COLUMNS)}) VALUES ({placeholders})",
            [values[col] for col in CONTACT_COLUMNS],
        )
        await self.conn.commit()
        return contact

    async def log_outreach(self, contact_id: str, on: date) -> None:
        await self.conn.execute(
            "INSERT INTO outreach_log (id, contact_id, date) VALUES (?, ?, ?)",
            (str(uuid.uuid4()), contact_id, on.isoformat()),
        )
        await self.conn.commit()

    async def add_event_company(self, event_id: str, company_id: str) -> None:
        await self.conn.execute(
            "INSERT OR IGNORE INTO event_companies (event_id, company_id) VALUES (?, ?)",
            (event_id, company_id),
        )
        await self.conn.commit()

    async def create_campaign(
        self,
        name: str,
        company_cooldown_days: int | None = None,
        id: str | None = None,
    ) -> str:
        campaign_id = id or str(uuid.uuid4())
        await self.conn.execute(
            "INSERT INTO campaigns (id, name, company_cooldown_days) VALUES (?, ?, ?)",
            (campaign_id, name, company_cooldown_days),
        )
        await self.conn.commit()
        return campaign_id

    async def add_campaign_recipient(
        self,
        campaign_id: str,
        company_id: str | None,
        sent_at: datetime | None,
        contact_id: str | None = None,
    ) -> None:
        await self.conn.execute(
            """
            INSERT INTO campaign_recipients (id, campaign_id, contact_id, company_id, sent_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                str(uuid.uuid4()), campaign_id, contact_id, company_id,
                sent_at.isoformat() if sent_at else None,
            ),
        )
        await self.conn.commit()
