"""Core modules: models, store backends, config."""

from contact_search.core.config import Settings
from contact_search.core.models import (
    CompanyRef,
    ContactQuery,
    ContactResult,
    SearchCriteria,
    SearchOutcome,
)
from contact_search.core.store import ContactStore, DataAccessError

__all__ = [
    "Settings",
    "CompanyRef",
    "ContactQuery",
    "ContactResult",
    "ContactStore",
    "DataAccessError",
    "SearchCriteria",
    "SearchOutcome",
]
