"""Chunked contact query execution.

Scopes larger than the chunk size are split into consecutive chunks and
queried concurrently, one bounded query per chunk. A failed chunk is logged
and contributes nothing; its siblings still count.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator, Sequence

from contact_search.core.config import Settings
from contact_search.core.models import ContactQuery, ContactResult, Diagnostic, StageResult
from contact_search.core.store import ContactStore, DataAccessError

logger = logging.getLogger(__name__)


def chunked(ids: Sequence[str], size: int) -> Iterator[list[str]]:
    """Consecutive slices of ``ids`` with at most ``size`` items each."""
    if size < 1:
        raise ValueError(f"chunk size must be positive, got {size}")
    for start in range(0, len(ids), size):
        yield list(ids[start:start + size])


class ChunkedQueryExecutor:
    """Runs a contact query against a company scope within transport limits."""

    def __init__(self, store: ContactStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or Settings()

    async def run(
        self, query: ContactQuery, company_ids: list[str] | None
    ) -> StageResult[list[ContactResult]]:
        chunk_size = self.settings.search_chunk_size
        if company_ids is None or len(company_ids) <= chunk_size:
            # Single query; a failure here fails the search.
            rows = await self.store.query_contacts(
                query, company_ids, self.settings.search_single_query_limit
            )
            return StageResult(value=rows)

        chunks = list(chunked(company_ids, chunk_size))
        logger.info(
            "Fanning out contact query: %d companies in %d chunks of <=%d",
            len(company_ids), len(chunks), chunk_size,
        )
        semaphore = asyncio.Semaphore(self.settings.search_max_concurrent_chunks)
        results = await asyncio.gather(
            *(self._run_chunk(i, chunk, query, semaphore) for i, chunk in enumerate(chunks)),
            return_exceptions=True,
        )
        # Only DataAccessError degrades a chunk; anything else fails the search
        # once every chunk has finished.
        for result in results:
            if isinstance(result, BaseException):
                raise result

        rows: list[ContactResult] = []
        diagnostics: list[Diagnostic] = []
        for chunk_rows, diag in results:
            rows.extend(chunk_rows)
            if diag:
                diagnostics.append(diag)
        return StageResult(value=rows, diagnostics=diagnostics)

    async def _run_chunk(
        self,
        index: int,
        chunk: list[str],
        query: ContactQuery,
        semaphore: asyncio.Semaphore,
    ) -> tuple[list[ContactResult], Diagnostic | None]:
        async with semaphore:
            try:
                rows = await self.store.query_contacts(
                    query, chunk, self.settings.search_chunk_query_limit
                )
            except DataAccessError as e:
                logger.error(
                    "Contact chunk %d (%d companies) failed: %s (detail=%s, hint=%s)",
                    index, len(chunk), e.message, e.detail, e.hint,
                )
                return [], Diagnostic(
                    stage=f"chunk:{index}", message=e.message, detail=e.detail, hint=e.hint
                )
        if len(rows) >= self.settings.search_chunk_query_limit:
            logger.warning(
                "Contact chunk %d hit the %d row cap; results may be truncated",
                index, self.settings.search_chunk_query_limit,
            )
        return rows, None
