"""Pydantic models for the contact search service."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")

# Sentinel used by every single-valued filter to mean "no filter".
ALL = "all"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class OutreachStatus(str, enum.Enum):
    NOT_CONTACTED = "not_contacted"
    CONTACTED = "contacted"
    RESPONDED = "responded"
    CONVERTED = "converted"


class EmailType(str, enum.Enum):
    PERSONAL = "personal"
    CATCH_ALL = "catch_all"


class RecencyBucket(str, enum.Enum):
    NEVER = "never"
    DAYS_7 = "7d"
    DAYS_30 = "30d"
    DAYS_90 = "90d"
    DAYS_90_PLUS = "90d_plus"
    ALL = "all"


class FilterMode(str, enum.Enum):
    INCLUDE = "include"
    EXCLUDE = "exclude"


# ---------------------------------------------------------------------------
# Store projections
# ---------------------------------------------------------------------------

class CompanyRef(BaseModel):
    id: str
    name: str | None = None


class ContactResult(BaseModel):
    """Fixed contact projection returned by every store backend.

    Status and email type stay plain strings: a value the enums don't know
    about must not fail a whole search.
    """

    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    email_type: str | None = None
    title: str | None = None
    seniority: str | None = None
    outreach_status: str | None = None
    company_id: str | None = None
    company: CompanyRef | None = None


class Campaign(BaseModel):
    id: str
    name: str | None = None
    company_cooldown_days: int | None = None


class RecentSend(BaseModel):
    company_id: str
    sent_at: datetime
    campaign_name: str | None = None

    @field_validator("sent_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Search input
# ---------------------------------------------------------------------------

class SearchCriteria(BaseModel):
    """Every filter a contact search accepts.

    Empty strings and ``"all"`` are normalized to ``None`` so downstream code
    only has to test for presence.
    """

    search: str | None = None
    company_ids: list[str | None] | None = None
    company_id: str | None = None
    category: str | None = None
    edge_category: str | None = None
    status: str | None = None
    seniority: str | None = None
    title_search: str | None = None
    has_email: bool = True
    event_id: str | None = None
    outreach: str | None = None
    not_within: str | None = None
    converted: str | None = None
    catch_all: str | None = None

    @field_validator(
        "search", "company_id", "category", "edge_category", "status",
        "seniority", "title_search", "event_id", "outreach", "not_within",
        "converted", "catch_all",
        mode="before",
    )
    @classmethod
    def _blank_or_all_is_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            if not v or v == ALL:
                return None
        return v

    @field_validator("company_ids", mode="before")
    @classmethod
    def _split_company_ids(cls, v: Any) -> Any:
        # GET sends a comma list, POST sends an array
        if isinstance(v, str):
            return [part.strip() for part in v.split(",")]
        return v

    def cleaned_company_ids(self) -> list[str] | None:
        """Explicit company ids with falsy entries dropped, order preserved."""
        if self.company_ids is None:
            return None
        return list(dict.fromkeys(cid for cid in self.company_ids if cid))


class ContactQuery(BaseModel):
    """Column filters pushed down to the store, ANDed together."""

    has_email: bool = True
    include_ids: list[str] | None = None
    exclude_ids: list[str] | None = None
    status: str | None = None
    converted: str | None = None  # "only" | "exclude"
    catch_all: str | None = None  # "only" | "exclude"
    seniority: str | None = None
    search: str | None = None
    title_search: str | None = None


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------

class Diagnostic(BaseModel):
    """A degraded stage: logged, never surfaced to the caller."""

    stage: str
    message: str
    detail: str | None = None
    hint: str | None = None


class StageResult(BaseModel, Generic[T]):
    value: T
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class RecencyFilter(BaseModel):
    mode: FilterMode
    ids: frozenset[str] = frozenset()


class SearchOutcome(BaseModel):
    contacts: list[ContactResult] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    short_circuit: str | None = None  # reason, when no contact query ran


class CooldownWarning(BaseModel):
    contact_id: str
    campaign_name: str
    days_ago: int
    contact_name: str
