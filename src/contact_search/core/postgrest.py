"""Contact store - Supabase REST backend (PostgREST over httpx).

Every filter is encoded into the request URL, which is what bounds the size
of ``in.(...)`` id lists and makes chunked execution necessary.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

import httpx

from contact_search.core.config import Settings
from contact_search.core.models import Campaign, ContactQuery, ContactResult, RecentSend
from contact_search.core.store import (
    CATCH_ALL_EMAIL_TYPE,
    CONTACT_COLUMNS,
    CONVERTED_STATUS,
    ContactStore,
    DataAccessError,
)

logger = logging.getLogger(__name__)

CONTACT_SELECT = ",".join(CONTACT_COLUMNS) + ",company:companies!contacts_company_id_fkey(id,name)"
RECIPIENT_SELECT = "company_id,sent_at,campaign:campaigns!campaign_recipients_campaign_id_fkey(name)"

_RESERVED = set(',.:()"\\ ')

Params = list[tuple[str, str]]


def quote(value: str) -> str:
    """Quote a value for use inside a PostgREST list or logic tree."""
    if not any(ch in _RESERVED for ch in value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def in_list(values: list[str]) -> str:
    return "(" + ",".join(quote(v) for v in values) + ")"


def build_contact_params(
    query: ContactQuery, company_ids: list[str] | None, limit: int
) -> Params:
    """PostgREST query parameters for a contact search, ANDed."""
    params: Params = [
        ("select", CONTACT_SELECT),
        ("order", "last_name.asc"),
        ("limit", str(limit)),
    ]
    or_groups: list[str] = []

    if company_ids is not None:
        params.append(("company_id", f"in.{in_list(company_ids)}"))
    if query.has_email:
        params.append(("email", "not.is.null"))
    if query.include_ids is not None:
        params.append(("id", f"in.{in_list(query.include_ids)}"))
    if query.exclude_ids:
        params.append(("id", f"not.in.{in_list(query.exclude_ids)}"))
    if query.status:
        params.append(("outreach_status", f"eq.{query.status}"))
    if query.converted == "only":
        params.append(("outreach_status", f"eq.{CONVERTED_STATUS}"))
    elif query.converted == "exclude":
        params.append(("outreach_status", f"neq.{CONVERTED_STATUS}"))
    if query.catch_all == "only":
        params.append(("email_type", f"eq.{CATCH_ALL_EMAIL_TYPE}"))
    elif query.catch_all == "exclude":
        or_groups.append(f"email_type.is.null,email_type.neq.{CATCH_ALL_EMAIL_TYPE}")
    if query.seniority:
        params.append(("seniority", f"eq.{query.seniority}"))
    if query.search:
        term = quote(f"*{query.search}*")
        or_groups.append(
            f"first_name.ilike.{term},last_name.ilike.{term},email.ilike.{term}"
        )
    if query.title_search:
        params.append(("title", f"ilike.*{query.title_search}*"))

    # PostgREST takes a single top-level `or`; several groups nest under `and`.
    if len(or_groups) == 1:
        params.append(("or", f"({or_groups[0]})"))
    elif or_groups:
        params.append(("and", "(" + ",".join(f"or({g})" for g in or_groups) + ")"))

    return params


class PostgrestStore(ContactStore):
    """Contact store backed by the Supabase REST API."""

    backend_name = "postgrest"

    def __init__(self, settings: Settings | None = None, client: httpx.AsyncClient | None = None):
        self.settings = settings or Settings()
        self.base_url = self.settings.supabase_url.rstrip("/") + "/rest/v1"
        self.api_key = self.settings.supabase_service_key
        self.headers = {"Accept": "application/json"}
        if self.api_key:
            self.headers["apikey"] = self.api_key
            self.headers["Authorization"] = f"Bearer {self.api_key}"
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.http_timeout_seconds)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build(self, table: str, params: Params) -> httpx.Request:
        return self.client.build_request(
            "GET", f"{self.base_url}/{table}", params=params, headers=self.headers
        )

    async def _get(self, table: str, params: Params) -> list[dict[str, Any]]:
        request = self._build(table, params)
        url_length = len(str(request.url))
        if url_length > self.settings.postgrest_max_url_length:
            logger.warning(
                "PostgREST request to %s is %d chars (budget %d); the server may reject it",
                table, url_length, self.settings.postgrest_max_url_length,
            )
        try:
            resp = await self.client.send(request)
        except httpx.RequestError as e:
            raise DataAccessError(f"{table} request failed: {e}", detail=type(e).__name__) from e

        if resp.is_error:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise DataAccessError(
                body.get("message") or f"{table} query failed with HTTP {resp.status_code}",
                detail=body.get("details"),
                hint=body.get("hint"),
            )
        return resp.json()

    # -----------------------------------------------------------------------
    # Search primitives
    # -----------------------------------------------------------------------

    async def outreach_contact_ids(self, since: date | None, limit: int) -> list[str]:
        params: Params = [("select", "contact_id"), ("limit", str(limit))]
        if since is not None:
            params.append(("date", f"gte.{since.isoformat()}"))
        rows = await self._get("outreach_log", params)
        return [r["contact_id"] for r in rows if r.get("contact_id")]

    async def event_company_ids(self, event_id: str) -> list[str]:
        rows = await self._get(
            "event_companies",
            [("select", "company_id"), ("event_id", f"eq.{event_id}")],
        )
        return [r["company_id"] for r in rows if r.get("company_id")]

    async def category_company_ids(
        self, category: str | None, edge_category: str | None
    ) -> list[str]:
        params: Params = [("select", "id")]
        if category:
            params.append(("category", f"eq.{category}"))
        if edge_category:
            params.append(("edge_categories", "cs.{" + quote(edge_category) + "}"))
        rows = await self._get("companies", params)
        return [r["id"] for r in rows]

    async def query_contacts(
        self,
        query: ContactQuery,
        company_ids: list[str] | None,
        limit: int,
    ) -> list[ContactResult]:
        params = build_contact_params(query, company_ids, limit)
        local_exclude: set[str] = set()
        budget = self.settings.postgrest_max_url_length
        if query.exclude_ids and len(str(self._build("contacts", params).url)) > budget:
            # An oversized not.in list is rejected outright (414/431); drop it
            # from the URL and filter the returned rows instead.
            logger.warning(
                "Exclusion list of %d ids exceeds the %d char URL budget; filtering locally",
                len(query.exclude_ids), budget,
            )
            local_exclude = set(query.exclude_ids)
            params = build_contact_params(
                query.model_copy(update={"exclude_ids": None}), company_ids, limit
            )
        rows = await self._get("contacts", params)
        return [ContactResult(**row) for row in rows if row["id"] not in local_exclude]

    async def get_campaign(self, campaign_id: str) -> Campaign | None:
        rows = await self._get(
            "campaigns",
            [
                ("select", "id,name,company_cooldown_days"),
                ("id", f"eq.{campaign_id}"),
                ("limit", "1"),
            ],
        )
        return Campaign(**rows[0]) if rows else None

    async def recent_sends(
        self, company_ids: list[str], since: datetime, limit: int
    ) -> list[RecentSend]:
        rows = await self._get(
            "campaign_recipients",
            [
                ("select", RECIPIENT_SELECT),
                ("company_id", f"in.{in_list(company_ids)}"),
                ("sent_at", f"gte.{since.isoformat()}"),
                ("sent_at", "not.is.null"),
                ("order", "sent_at.desc"),
                ("limit", str(limit)),
            ],
        )
        sends = []
        for row in rows:
            campaign = row.get("campaign") or {}
            sends.append(RecentSend(
                company_id=row["company_id"],
                sent_at=row["sent_at"],
                campaign_name=campaign.get("name"),
            ))
        return sends
