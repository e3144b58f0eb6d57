"""Company cooldown warnings for campaign-aware contact search."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from contact_search.core.config import Settings
from contact_search.core.models import ContactResult, CooldownWarning, RecentSend
from contact_search.core.store import ContactStore, DataAccessError
from contact_search.executor import chunked

logger = logging.getLogger(__name__)


class CooldownChecker:
    """Flags contacts whose company was emailed by any campaign recently."""

    def __init__(self, store: ContactStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or Settings()

    async def cooldown_days(self, campaign_id: str) -> int:
        try:
            campaign = await self.store.get_campaign(campaign_id)
        except DataAccessError as e:
            logger.error("Campaign %s lookup failed: %s", campaign_id, e.message)
            campaign = None
        if campaign and campaign.company_cooldown_days:
            return campaign.company_cooldown_days
        return self.settings.default_company_cooldown_days

    async def warnings(
        self,
        campaign_id: str,
        contacts: list[ContactResult],
        now: datetime | None = None,
    ) -> list[CooldownWarning]:
        company_ids = list(dict.fromkeys(c.company_id for c in contacts if c.company_id))
        if not company_ids:
            return []

        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=await self.cooldown_days(campaign_id))

        latest: dict[str, RecentSend] = {}
        for chunk in chunked(company_ids, self.settings.search_chunk_size):
            try:
                sends = await self.store.recent_sends(chunk, since, self.settings.recent_send_limit)
            except DataAccessError as e:
                logger.error("Recent send lookup failed: %s (detail=%s)", e.message, e.detail)
                return []
            for send in sends:
                current = latest.get(send.company_id)
                if current is None or send.sent_at > current.sent_at:
                    latest[send.company_id] = send

        warnings: list[CooldownWarning] = []
        for contact in contacts:
            send = latest.get(contact.company_id) if contact.company_id else None
            if send is None:
                continue
            days_ago = round((now - send.sent_at).total_seconds() / 86400)
            warnings.append(CooldownWarning(
                contact_id=contact.id,
                campaign_name=send.campaign_name or "Unknown",
                days_ago=days_ago,
                contact_name=f"{contact.first_name or ''} {contact.last_name or ''}".strip(),
            ))
        return warnings
