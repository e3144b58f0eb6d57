"""Company scope resolution.

Reduces the four optional company filters (explicit id list, single id,
event attendance, category / edge category) to one allow-list. Stages run
in that fixed order and each one narrows the previous scope.
"""

from __future__ import annotations

import logging

from contact_search.core.models import Diagnostic, SearchCriteria, StageResult
from contact_search.core.store import ContactStore, DataAccessError

logger = logging.getLogger(__name__)

# None = no company restriction; [] = nothing can match.
Scope = list[str] | None


def narrow(scope: Scope, allowed: list[str]) -> list[str]:
    """Intersect ``scope`` with ``allowed``, keeping scope order; adopt ``allowed`` if unscoped."""
    if scope is None:
        return list(dict.fromkeys(allowed))
    allowed_set = set(allowed)
    return [cid for cid in scope if cid in allowed_set]


async def _lookup(stage: str, coro) -> tuple[list[str], Diagnostic | None]:
    try:
        return await coro, None
    except DataAccessError as e:
        logger.error(
            "Company %s lookup failed: %s (detail=%s, hint=%s)",
            stage, e.message, e.detail, e.hint,
        )
        return [], Diagnostic(stage=stage, message=e.message, detail=e.detail, hint=e.hint)


async def resolve_company_scope(
    store: ContactStore, criteria: SearchCriteria
) -> StageResult[Scope]:
    """Resolve the effective company scope for a search.

    A failed event or category lookup yields an empty stage, never an
    unfiltered one. Resolution stops as soon as the scope is empty.
    """
    diagnostics: list[Diagnostic] = []
    scope: Scope = None

    explicit = criteria.cleaned_company_ids()
    if explicit is not None:
        if not explicit:
            return StageResult(value=[])
        scope = explicit

    if criteria.company_id:
        scope = narrow(scope, [criteria.company_id])
        if not scope:
            return StageResult(value=[])

    if criteria.event_id:
        event_ids, diag = await _lookup("event", store.event_company_ids(criteria.event_id))
        if diag:
            diagnostics.append(diag)
        scope = narrow(scope, event_ids)
        if not scope:
            return StageResult(value=[], diagnostics=diagnostics)

    if criteria.category or criteria.edge_category:
        category_ids, diag = await _lookup(
            "category",
            store.category_company_ids(criteria.category, criteria.edge_category),
        )
        if diag:
            diagnostics.append(diag)
        scope = narrow(scope, category_ids)
        if not scope:
            return StageResult(value=[], diagnostics=diagnostics)

    return StageResult(value=scope, diagnostics=diagnostics)
