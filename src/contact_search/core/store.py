"""Abstract base class for the relational store the search engine reads from."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime

from contact_search.core.models import Campaign, ContactQuery, ContactResult, RecentSend

# Fixed contact projection, in column order.
CONTACT_COLUMNS = (
    "id",
    "first_name",
    "last_name",
    "email",
    "email_type",
    "title",
    "seniority",
    "outreach_status",
    "company_id",
)

CONVERTED_STATUS = "converted"
CATCH_ALL_EMAIL_TYPE = "catch_all"


class DataAccessError(Exception):
    """The store rejected or failed a query."""

    def __init__(self, message: str, detail: str | None = None, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.hint = hint

    def __str__(self) -> str:
        return self.message


class ContactStore(ABC):
    """Read-only store primitives used by contact search."""

    backend_name: str = "unknown"

    async def connect(self) -> None:
        """Open connections / sessions."""
        pass

    async def close(self) -> None:
        """Release connections / sessions."""
        pass

    @abstractmethod
    async def outreach_contact_ids(self, since: date | None, limit: int) -> list[str]:
        """Contact ids from outreach_log rows (``date >= since`` when given).

        May contain duplicates; callers de-duplicate.
        """
        ...

    @abstractmethod
    async def event_company_ids(self, event_id: str) -> list[str]:
        """Company ids that attended an event."""
        ...

    @abstractmethod
    async def category_company_ids(
        self, category: str | None, edge_category: str | None
    ) -> list[str]:
        """Company ids matching a category and/or containing an edge category tag."""
        ...

    @abstractmethod
    async def query_contacts(
        self,
        query: ContactQuery,
        company_ids: list[str] | None,
        limit: int,
    ) -> list[ContactResult]:
        """Contacts matching every filter, ordered by last name, capped at ``limit``."""
        ...

    @abstractmethod
    async def get_campaign(self, campaign_id: str) -> Campaign | None:
        ...

    @abstractmethod
    async def recent_sends(
        self, company_ids: list[str], since: datetime, limit: int
    ) -> list[RecentSend]:
        """Sent campaign recipients for these companies since a cutoff, newest first."""
        ...
