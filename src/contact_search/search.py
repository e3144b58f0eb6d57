"""Contact search engine - composes recency, scope, chunked query, and merge."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from contact_search.core.config import Settings
from contact_search.core.models import (
    ContactQuery,
    FilterMode,
    RecencyFilter,
    SearchCriteria,
    SearchOutcome,
)
from contact_search.core.store import ContactStore
from contact_search.executor import ChunkedQueryExecutor
from contact_search.merger import merge_results
from contact_search.recency import resolve_not_within, resolve_outreach
from contact_search.scope import resolve_company_scope

logger = logging.getLogger(__name__)


def build_contact_query(
    criteria: SearchCriteria, recency: RecencyFilter | None
) -> ContactQuery:
    """Column filters for the store, with the recency set folded in."""
    include_ids = exclude_ids = None
    if recency is not None and recency.mode == FilterMode.INCLUDE:
        include_ids = sorted(recency.ids)
    elif recency is not None and recency.ids:
        exclude_ids = sorted(recency.ids)

    return ContactQuery(
        has_email=criteria.has_email,
        include_ids=include_ids,
        exclude_ids=exclude_ids,
        status=criteria.status,
        converted=criteria.converted,
        catch_all=criteria.catch_all,
        seniority=criteria.seniority,
        search=criteria.search,
        title_search=criteria.title_search,
    )


class ContactSearchEngine:
    """Runs one contact search end to end.

    Steps:
    1. Resolve outreach recency, the not-within exclusion set and the company
       scope concurrently, joining all three
    2. Short-circuit to an empty result when a required stage is empty
    3. Run the (possibly chunked) contact query
    4. Post-filter, de-duplicate and sort
    """

    def __init__(self, store: ContactStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or Settings()
        self.executor = ChunkedQueryExecutor(store, self.settings)

    async def search(
        self, criteria: SearchCriteria, now: datetime | None = None
    ) -> SearchOutcome:
        now = now or datetime.now(timezone.utc)
        scan_limit = self.settings.outreach_log_scan_limit

        # Join every stage before surfacing the first failure.
        results = await asyncio.gather(
            resolve_outreach(self.store, criteria.outreach, scan_limit, now),
            resolve_not_within(self.store, criteria.not_within, scan_limit, now),
            resolve_company_scope(self.store, criteria),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        recency, not_within, scope = results

        diagnostics = list(scope.diagnostics)
        company_ids = scope.value

        if company_ids is not None and not company_ids:
            return self._short_circuit("empty company scope", diagnostics)
        if recency is not None and recency.mode == FilterMode.INCLUDE and not recency.ids:
            return self._short_circuit(f"no contacts for outreach={criteria.outreach}", diagnostics)

        query = build_contact_query(criteria, recency)
        executed = await self.executor.run(query, company_ids)
        diagnostics.extend(executed.diagnostics)

        contacts = merge_results(executed.value, not_within)

        for diag in diagnostics:
            logger.warning("Search stage %s degraded: %s", diag.stage, diag.message)
        logger.info(
            "Contact search: %d candidates, %d returned (scope=%s)",
            len(executed.value),
            len(contacts),
            "all" if company_ids is None else len(company_ids),
        )
        return SearchOutcome(contacts=contacts, diagnostics=diagnostics)

    def _short_circuit(self, reason: str, diagnostics: list) -> SearchOutcome:
        logger.info("Contact search short-circuited: %s", reason)
        return SearchOutcome(diagnostics=diagnostics, short_circuit=reason)
