"""Shared test fixtures."""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime

import pytest

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
    CONVERTED_STATUS,
    ContactStore,
    DataAccessError,
)


class FakeStore(ContactStore):
    """In-memory store with the same filter semantics as the real backends.

    Counts calls per method, can fail any method, and can fail the chunk
    query for any chunk containing a given company id.
    """

    backend_name = "fake"

    def __init__(self):
        self.companies: dict[str, dict] = {}
        self.contacts: list[ContactResult] = []
        self.outreach: list[tuple[str, date]] = []
        self.event_companies: list[tuple[str, str]] = []
        self.campaigns: dict[str, Campaign] = {}
        self.sends: list[RecentSend] = []

        self.calls: Counter[str] = Counter()
        self.contact_queries: list[tuple[list[str] | None, int]] = []
        self.failures: dict[str, DataAccessError] = {}
        self.fail_chunks_with: set[str] = set()
        self.extra_rows: list[ContactResult] = []

    # -- seeding ---------------------------------------------------------

    def add_company(self, id: str, name: str | None = None, category: str | None = None,
                    edge_categories: list[str] | None = None) -> str:
        self.companies[id] = {
            "name": name or id,
            "category": category,
            "edge_categories": edge_categories or [],
        }
        return id

    def add_contact(self, id: str, **fields) -> ContactResult:
        company_id = fields.get("company_id")
        company = None
        if company_id and company_id in self.companies:
            company = CompanyRef(id=company_id, name=self.companies[company_id]["name"])
        contact = ContactResult(id=id, company=company, **fields)
        self.contacts.append(contact)
        return contact

    def _maybe_fail(self, method: str) -> None:
        self.calls[method] += 1
        if method in self.failures:
            raise self.failures[method]

    # -- ContactStore ----------------------------------------------------

    async def outreach_contact_ids(self, since: date | None, limit: int) -> list[str]:
        self._maybe_fail("outreach_contact_ids")
        rows = [cid for cid, on in self.outreach if since is None or on >= since]
        return rows[:limit]

    async def event_company_ids(self, event_id: str) -> list[str]:
        self._maybe_fail("event_company_ids")
        return [cid for eid, cid in self.event_companies if eid == event_id]

    async def category_company_ids(self, category, edge_category) -> list[str]:
        self._maybe_fail("category_company_ids")
        return [
            cid for cid, co in self.companies.items()
            if (not category or co["category"] == category)
            and (not edge_category or edge_category in co["edge_categories"])
        ]

    async def query_contacts(
        self, query: ContactQuery, company_ids: list[str] | None, limit: int
    ) -> list[ContactResult]:
        self._maybe_fail("query_contacts")
        self.contact_queries.append((list(company_ids) if company_ids is not None else None, limit))
        if company_ids and self.fail_chunks_with.intersection(company_ids):
            raise DataAccessError("chunk rejected", detail="Request Header Fields Too Large")

        rows = [c for c in self.contacts if _matches(c, query, company_ids)]
        rows.sort(key=lambda c: c.last_name or "")
        return (rows + list(self.extra_rows))[:limit]

    async def get_campaign(self, campaign_id: str) -> Campaign | None:
        self._maybe_fail("get_campaign")
        return self.campaigns.get(campaign_id)

    async def recent_sends(self, company_ids, since: datetime, limit: int) -> list[RecentSend]:
        self._maybe_fail("recent_sends")
        rows = [s for s in self.sends if s.company_id in company_ids and s.sent_at >= since]
        rows.sort(key=lambda s: s.sent_at, reverse=True)
        return rows[:limit]


def _contains(value: str | None, term: str) -> bool:
    return value is not None and term.lower() in value.lower()


def _matches(c: ContactResult, q: ContactQuery, company_ids: list[str] | None) -> bool:
    if company_ids is not None and c.company_id not in company_ids:
        return False
    if q.has_email and c.email is None:
        return False
    if q.include_ids is not None and c.id not in q.include_ids:
        return False
    if q.exclude_ids and c.id in q.exclude_ids:
        return False
    if q.status and c.outreach_status != q.status:
        return False
    if q.converted == "only" and c.outreach_status != CONVERTED_STATUS:
        return False
    if q.converted == "exclude" and (c.outreach_status is None or c.outreach_status == CONVERTED_STATUS):
        return False
    if q.catch_all == "only" and c.email_type != CATCH_ALL_EMAIL_TYPE:
        return False
    if q.catch_all == "exclude" and c.email_type == CATCH_ALL_EMAIL_TYPE:
        return False
    if q.seniority and c.seniority != q.seniority:
        return False
    if q.search and not any(
        _contains(v, q.search) for v in (c.first_name, c.last_name, c.email)
    ):
        return False
    if q.title_search and not _contains(c.title, q.title_search):
        return False
    return True


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(use_sqlite=True, sqlite_path=":memory:", supabase_url="")
