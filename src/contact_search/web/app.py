"""FastAPI application - contact search REST API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse

from contact_search.cooldown import CooldownChecker
from contact_search.core.config import Settings
from contact_search.core.db_factory import create_database
from contact_search.core.models import SearchCriteria, SearchOutcome
from contact_search.core.store import ContactStore, DataAccessError
from contact_search.search import ContactSearchEngine

logger = logging.getLogger(__name__)

settings = Settings()
db = create_database(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await db.connect()
    yield
    await db.close()


app = FastAPI(title="Contact Search", version="0.1.0", lifespan=lifespan)


def get_store() -> ContactStore:
    return db


def get_engine(store: ContactStore = Depends(get_store)) -> ContactSearchEngine:
    return ContactSearchEngine(store, settings)


def get_cooldown_checker(store: ContactStore = Depends(get_store)) -> CooldownChecker:
    return CooldownChecker(store, settings)


def criteria_from_query(
    search: str | None = Query(None),
    company_ids: str | None = Query(None, description="Comma-separated company ids"),
    company_id: str | None = Query(None),
    category: str | None = Query(None),
    edge_category: str | None = Query(None),
    status: str | None = Query(None),
    seniority: str | None = Query(None),
    title_search: str | None = Query(None),
    has_email: str | None = Query(None, description="'false' disables; on by default"),
    event_id: str | None = Query(None),
    outreach: str | None = Query(None),
    not_within: str | None = Query(None),
    converted: str | None = Query(None),
    catch_all: str | None = Query(None),
) -> SearchCriteria:
    return SearchCriteria(
        search=search,
        # an empty `company_ids=` means the list was not sent
        company_ids=company_ids or None,
        company_id=company_id,
        category=category,
        edge_category=edge_category,
        status=status,
        seniority=seniority,
        title_search=title_search,
        has_email=has_email != "false",
        event_id=event_id,
        outreach=outreach,
        not_within=not_within,
        converted=converted,
        catch_all=catch_all,
    )


async def _run_search(
    engine: ContactSearchEngine, criteria: SearchCriteria
) -> SearchOutcome | JSONResponse:
    """Run a search, mapping failures to the error response shape."""
    try:
        return await engine.search(criteria)
    except DataAccessError as e:
        logger.error(
            "Error searching contacts: %s (detail=%s, hint=%s)", e.message, e.detail, e.hint
        )
        return JSONResponse(
            status_code=500, content={"error": f"Failed to search contacts: {e.message}"}
        )
    except Exception:
        logger.exception("Unexpected error during contact search")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


def _contacts_payload(outcome: SearchOutcome) -> dict[str, Any]:
    return {"contacts": [c.model_dump(mode="json") for c in outcome.contacts]}


# =========================================================================
# API: Contact search
# =========================================================================


@app.get("/api/contacts/search")
async def api_search_contacts_get(
    criteria: SearchCriteria = Depends(criteria_from_query),
    engine: ContactSearchEngine = Depends(get_engine),
):
    """Search contacts with filters passed as query parameters."""
    outcome = await _run_search(engine, criteria)
    if isinstance(outcome, JSONResponse):
        return outcome
    return _contacts_payload(outcome)


@app.post("/api/contacts/search")
async def api_search_contacts_post(
    criteria: SearchCriteria,
    engine: ContactSearchEngine = Depends(get_engine),
):
    """Same as GET, for company id lists too long for a URL."""
    outcome = await _run_search(engine, criteria)
    if isinstance(outcome, JSONResponse):
        return outcome
    return _contacts_payload(outcome)


# =========================================================================
# API: Campaign available contacts
# =========================================================================


async def _available_contacts(
    campaign_id: str,
    criteria: SearchCriteria,
    engine: ContactSearchEngine,
    checker: CooldownChecker,
):
    outcome = await _run_search(engine, criteria)
    if isinstance(outcome, JSONResponse):
        return outcome
    try:
        warnings = await checker.warnings(campaign_id, outcome.contacts)
    except Exception:
        logger.exception("Unexpected error computing cooldown warnings")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    payload = _contacts_payload(outcome)
    payload["cooldown_warnings"] = [w.model_dump(mode="json") for w in warnings]
    return payload


@app.get("/api/campaigns/{campaign_id}/available-contacts")
async def api_available_contacts_get(
    campaign_id: str,
    criteria: SearchCriteria = Depends(criteria_from_query),
    engine: ContactSearchEngine = Depends(get_engine),
    checker: CooldownChecker = Depends(get_cooldown_checker),
):
    """Contact search plus warnings for companies inside the campaign's cooldown."""
    return await _available_contacts(campaign_id, criteria, engine, checker)


@app.post("/api/campaigns/{campaign_id}/available-contacts")
async def api_available_contacts_post(
    campaign_id: str,
    criteria: SearchCriteria,
    engine: ContactSearchEngine = Depends(get_engine),
    checker: CooldownChecker = Depends(get_cooldown_checker),
):
    return await _available_contacts(campaign_id, criteria, engine, checker)


# =========================================================================
# API: Utilities
# =========================================================================


@app.get("/api/health")
async def api_health(store: ContactStore = Depends(get_store)):
    return {"status": "ok", "backend": store.backend_name}
