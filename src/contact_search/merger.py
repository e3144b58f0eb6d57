"""Result merging - post-filter, de-duplicate, and globally re-sort."""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable

from contact_search.core.models import ContactResult


def last_name_key(contact: ContactResult) -> str:
    """Case- and accent-insensitive sort key; a missing last name sorts as ''."""
    decomposed = unicodedata.normalize("NFKD", contact.last_name or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def merge_results(
    rows: Iterable[ContactResult],
    exclude_ids: frozenset[str] | set[str] | None = None,
) -> list[ContactResult]:
    """Drop excluded ids, keep the first row per id, sort by last name.

    Per-chunk store ordering is only local, so the full list is re-sorted.
    The sort is stable: ties keep their input order.
    """
    seen: set[str] = set()
    merged: list[ContactResult] = []
    for row in rows:
        if exclude_ids and row.id in exclude_ids:
            continue
        if row.id in seen:
            continue
        seen.add(row.id)
        merged.append(row)
    merged.sort(key=last_name_key)
    return merged
