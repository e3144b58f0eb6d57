"""Outreach recency - turns time-window filters into contact id sets.

The store can't combine "touched within the last N days" with the other
contact filters in one pushdown, so the outreach log is scanned first and
the matching ids travel as an inclusion or exclusion set.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from contact_search.core.models import FilterMode, RecencyBucket, RecencyFilter
from contact_search.core.store import ContactStore

logger = logging.getLogger(__name__)

WINDOW_DAYS: dict[str, int] = {
    RecencyBucket.DAYS_7.value: 7,
    RecencyBucket.DAYS_30.value: 30,
    RecencyBucket.DAYS_90.value: 90,
}

STALE_AFTER_DAYS = 90


def _now() -> datetime:
    return datetime.now(timezone.utc)


def cutoff_date(window: str, now: datetime) -> date:
    """UTC calendar date ``window`` days before ``now``.

    Unrecognized windows fall back to ``now`` itself, i.e. "touched today".
    """
    days = WINDOW_DAYS.get(window)
    if days is None:
        logger.warning("Unrecognized recency window %r, using today as cutoff", window)
        days = 0
    return (now.astimezone(timezone.utc) - timedelta(days=days)).date()


async def contacted_ids(store: ContactStore, since: date | None, limit: int) -> set[str]:
    """Distinct contact ids in the outreach log, optionally since a date."""
    return set(await store.outreach_contact_ids(since, limit))


async def resolve_outreach(
    store: ContactStore,
    bucket: str | None,
    scan_limit: int,
    now: datetime | None = None,
) -> RecencyFilter | None:
    """Id set for the ``outreach`` filter, or None when it is off.

    ``never`` excludes everyone ever contacted; ``90d_plus`` includes contacts
    touched before, but not within, the last 90 days; any other value
    includes contacts touched since its cutoff.
    """
    if not bucket or bucket == RecencyBucket.ALL.value:
        return None
    now = now or _now()

    if bucket == RecencyBucket.NEVER.value:
        ids = await contacted_ids(store, None, scan_limit)
        return RecencyFilter(mode=FilterMode.EXCLUDE, ids=frozenset(ids))

    if bucket == RecencyBucket.DAYS_90_PLUS.value:
        ever = await contacted_ids(store, None, scan_limit)
        recent = await contacted_ids(
            store, cutoff_date(RecencyBucket.DAYS_90.value, now), scan_limit
        )
        return RecencyFilter(mode=FilterMode.INCLUDE, ids=frozenset(ever - recent))

    ids = await contacted_ids(store, cutoff_date(bucket, now), scan_limit)
    return RecencyFilter(mode=FilterMode.INCLUDE, ids=frozenset(ids))


async def resolve_not_within(
    store: ContactStore,
    window: str | None,
    scan_limit: int,
    now: datetime | None = None,
) -> frozenset[str] | None:
    """Contacts touched within ``window``, to be dropped after the main query."""
    if not window or window == RecencyBucket.ALL.value:
        return None
    ids = await contacted_ids(store, cutoff_date(window, now or _now()), scan_limit)
    return frozenset(ids)
