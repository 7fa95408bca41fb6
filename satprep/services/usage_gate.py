"""
Free-tier usage gate.

The database is the single source of truth for usage: every generated
flashcard set counts once against the calendar month (UTC) it was created
in. Subscribers (ACTIVE or TRIALING) are never limited.
"""
from __future__ import annotations

from datetime import datetime, timezone

import aiosqlite

from satprep.db.sqlite import count_sets_since
from satprep.models.owner import Owner, UsageStatus


def month_start(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


async def check_usage(
    db: aiosqlite.Connection,
    owner: Owner,
    limit: int,
    now: datetime | None = None,
) -> UsageStatus:
    if owner.has_subscription:
        return UsageStatus(allowed=True, has_subscription=True, usage_count=0, limit=limit)

    usage_count = await count_sets_since(db, owner.id, month_start(now))
    return UsageStatus(
        allowed=usage_count < limit,
        has_subscription=False,
        usage_count=usage_count,
        limit=limit,
    )
