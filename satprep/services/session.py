from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiosqlite
from fastapi import Depends, Request, Response

from satprep.config import settings
from satprep.db.sqlite import create_owner, get_db, get_owner
from satprep.models.owner import Owner

logger = logging.getLogger(__name__)


def _is_expired(owner: Owner) -> bool:
    now = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    return owner.expires_at < now


async def get_current_owner(
    request: Request,
    response: Response,
    db: aiosqlite.Connection = Depends(get_db),
) -> Owner:
    """Resolve the anonymous session from its cookie, creating one when missing or expired."""
    owner_id = request.cookies.get(settings.session_cookie_name)
    if owner_id:
        owner = await get_owner(db, owner_id)
        if owner is not None and not _is_expired(owner):
            return owner

    owner = await create_owner(db, settings.session_duration_days)
    logger.info("Created anonymous session %s", owner.id)
    response.set_cookie(
        settings.session_cookie_name,
        owner.id,
        max_age=settings.session_duration_days * 24 * 60 * 60,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )
    return owner
