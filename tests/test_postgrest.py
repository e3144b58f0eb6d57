"""Tests for the Supabase REST backend: filter encoding and error mapping."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import httpx
import pytest

from contact_search.core.config import Settings
from contact_search.core.models import ContactQuery
from contact_search.core.postgrest import PostgrestStore, build_contact_params, in_list, quote
from contact_search.core.store import DataAccessError


def make_store(handler, **overrides) -> tuple[PostgrestStore, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    settings = Settings(
        supabase_url="https://proj.supabase.co/", supabase_service_key="k", **overrides
    )
    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return PostgrestStore(settings, client=client), seen


def params_of(params) -> dict[str, list[str]]:
    out: dict[str, list[str]] = {}
    for key, value in params:
        out.setdefault(key, []).append(value)
    return out


class TestQuoting:
    def test_plain_value(self):
        assert quote("abc-123") == "abc-123"

    def test_reserved_characters(self):
        assert quote("smith, jr.") == '"smith, jr."'

    def test_escapes_quotes(self):
        assert quote('a"b') == '"a\\"b"'

    def test_in_list(self):
        assert in_list(["a", "b,c"]) == '(a,"b,c")'


class TestBuildContactParams:
    def test_defaults(self):
        p = params_of(build_contact_params(ContactQuery(), None, 500))
        assert p["order"] == ["last_name.asc"]
        assert p["limit"] == ["500"]
        assert p["email"] == ["not.is.null"]
        assert "company:companies!contacts_company_id_fkey(id,name)" in p["select"][0]
        assert "company_id" not in p

    def test_company_scope_and_ids(self):
        p = params_of(build_contact_params(
            ContactQuery(include_ids=["x"], exclude_ids=["y", "z"], has_email=False),
            ["c1", "c2"],
            1000,
        ))
        assert p["company_id"] == ["in.(c1,c2)"]
        assert p["id"] == ["in.(x)", "not.in.(y,z)"]
        assert "email" not in p

    def test_status_and_converted(self):
        p = params_of(build_contact_params(
            ContactQuery(status="contacted", converted="exclude"), None, 500
        ))
        assert p["outreach_status"] == ["eq.contacted", "neq.converted"]

    def test_search_uses_single_or(self):
        p = params_of(build_contact_params(ContactQuery(search="jan"), None, 500))
        assert p["or"] == ["(first_name.ilike.*jan*,last_name.ilike.*jan*,email.ilike.*jan*)"]

    def test_search_with_reserved_characters_is_quoted(self):
        p = params_of(build_contact_params(ContactQuery(search="o'neil, j"), None, 500))
        assert '"*o\'neil, j*"' in p["or"][0]

    def test_two_or_groups_nest_under_and(self):
        p = params_of(build_contact_params(
            ContactQuery(search="jan", catch_all="exclude"), None, 500
        ))
        assert "or" not in p
        assert p["and"] == [
            "(or(email_type.is.null,email_type.neq.catch_all),"
            "or(first_name.ilike.*jan*,last_name.ilike.*jan*,email.ilike.*jan*))"
        ]

    def test_catch_all_only_and_title(self):
        p = params_of(build_contact_params(
            ContactQuery(catch_all="only", title_search="sales", seniority="director"), None, 500
        ))
        assert p["email_type"] == ["eq.catch_all"]
        assert p["title"] == ["ilike.*sales*"]
        assert p["seniority"] == ["eq.director"]


class TestRequests:
    def test_query_contacts_parses_rows(self):
        rows = [{
            "id": "A", "first_name": "Ann", "last_name": "Smith", "email": "a@x.com",
            "email_type": None, "title": None, "seniority": None,
            "outreach_status": "contacted", "company_id": "C1",
            "company": {"id": "C1", "name": "Sunrise"},
        }]
        store, seen = make_store(lambda r: httpx.Response(200, json=rows))

        result = asyncio.run(store.query_contacts(ContactQuery(), ["C1"], 500))

        assert result[0].company.name == "Sunrise"
        request = seen[0]
        assert request.url.path == "/rest/v1/contacts"
        assert request.headers["apikey"] == "k"
        assert request.headers["authorization"] == "Bearer k"
        assert request.url.params.get_list("company_id") == ["in.(C1)"]

    def test_outreach_ids_with_cutoff(self):
        store, seen = make_store(lambda r: httpx.Response(200, json=[{"contact_id": "A"}]))
        result = asyncio.run(store.outreach_contact_ids(date(2026, 10, 12), 50000))
        assert result == ["A"]
        assert seen[0].url.params["date"] == "gte.2026-10-12"
        assert seen[0].url.params["limit"] == "50000"

    def test_edge_category_uses_containment(self):
        store, seen = make_store(lambda r: httpx.Response(200, json=[{"id": "C1"}]))
        assert asyncio.run(store.category_company_ids("clinic", "energy")) == ["C1"]
        assert seen[0].url.params["category"] == "eq.clinic"
        assert seen[0].url.params["edge_categories"] == "cs.{energy}"

    def test_error_body_maps_to_data_access_error(self):
        body = {"message": "column does not exist", "details": "contacts.foo", "hint": "typo?"}
        store, _ = make_store(lambda r: httpx.Response(400, json=body))
        with pytest.raises(DataAccessError) as exc:
            asyncio.run(store.event_company_ids("E1"))
        assert exc.value.message == "column does not exist"
        assert exc.value.detail == "contacts.foo"
        assert exc.value.hint == "typo?"

    def test_non_json_error(self):
        store, _ = make_store(lambda r: httpx.Response(431, text="Request Header Fields Too Large"))
        with pytest.raises(DataAccessError) as exc:
            asyncio.run(store.event_company_ids("E1"))
        assert "HTTP 431" in exc.value.message

    def test_transport_error(self):
        def boom(request):
            raise httpx.ConnectError("refused", request=request)
        store, _ = make_store(boom)
        with pytest.raises(DataAccessError) as exc:
            asyncio.run(store.event_company_ids("E1"))
        assert exc.value.detail == "ConnectError"

    def test_recent_sends_flattens_campaign_name(self):
        rows = [{"company_id": "C1", "sent_at": "2026-10-10T09:00:00+00:00",
                 "campaign": {"name": "Autumn"}}]
        store, seen = make_store(lambda r: httpx.Response(200, json=rows))
        sends = asyncio.run(store.recent_sends(
            ["C1"], datetime(2026, 10, 1, tzinfo=timezone.utc), 200
        ))
        assert sends[0].campaign_name == "Autumn"
        assert seen[0].url.params.get_list("sent_at") == [
            "gte.2026-10-01T00:00:00+00:00", "not.is.null",
        ]

    def test_missing_campaign(self):
        store, _ = make_store(lambda r: httpx.Response(200, json=[]))
        assert asyncio.run(store.get_campaign("K1")) is None

    def test_short_exclusion_list_stays_in_url(self):
        store, seen = make_store(lambda r: httpx.Response(200, json=[]))
        asyncio.run(store.query_contacts(ContactQuery(exclude_ids=["X"]), None, 500))
        assert seen[0].url.params.get_list("id") == ["not.in.(X)"]

    def test_oversized_exclusion_list_is_filtered_locally(self):
        excluded = [f"00000000-0000-0000-0000-{i:012d}" for i in range(200)]
        rows = [
            {"id": excluded[7], "last_name": "Gone"},
            {"id": "keep-me", "last_name": "Kept"},
        ]
        store, seen = make_store(
            lambda r: httpx.Response(200, json=rows), postgrest_max_url_length=2000
        )

        result = asyncio.run(
            store.query_contacts(ContactQuery(exclude_ids=excluded, search="e"), None, 500)
        )

        assert [c.id for c in result] == ["keep-me"]
        assert seen[0].url.params.get_list("id") == []
        assert seen[0].url.params["or"].startswith("(first_name.ilike")
