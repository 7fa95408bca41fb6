"""
Flashcards & spaced repetition router.

Endpoints:
  GET    /flashcards                          — the owner's sets, newest first
  POST   /flashcards/generate                 — generate a set for a topic via the LLM
  GET    /flashcards/due                      — cards due for review today
  POST   /flashcards/cards/{card_id}/review   — submit a rating, run the scheduler
  GET    /flashcards/stats                    — totals, due today, per-set breakdown
  GET    /flashcards/usage                    — free-tier usage for the owner
  GET    /flashcards/{set_id}                 — single set
  DELETE /flashcards/{set_id}                 — delete a set and its cards
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone

import aiosqlite
import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from satprep.config import settings
from satprep.db.sqlite import (
    create_flashcard_set,
    delete_flashcard_set,
    get_db,
    get_flashcard_set,
    get_owner_flashcard,
    list_flashcard_sets,
    list_owner_flashcards,
    update_flashcard_review,
)
from satprep.models.flashcard import (
    Flashcard,
    FlashcardList,
    FlashcardSet,
    FlashcardSetList,
    FlashcardStats,
    GenerateRequest,
    ReviewRequest,
    ReviewResult,
    SetStats,
)
from satprep.models.owner import Owner, UsageStatus
from satprep.services.flashcard_generator import generate_flashcards
from satprep.services.llm_service import LLMResponseError, LLMUnavailableError
from satprep.services.rate_limit import RateLimiter
from satprep.services.scheduler import (
    compute_next_review,
    is_due,
    review_interval_text,
    select_due,
)
from satprep.services.session import get_current_owner
from satprep.services.ttl_store import TTLStore
from satprep.services.usage_gate import check_usage

logger = logging.getLogger(__name__)
router = APIRouter()


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_generation_cache(request: Request) -> TTLStore:
    return request.app.state.generation_cache


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _due_sort_key(card: Flashcard) -> tuple[int, str]:
    # Never-reviewed cards first, then oldest due date
    if card.next_review is None:
        return (0, "")
    return (1, card.next_review.isoformat())


# --- Endpoints ---


@router.get("", response_model=FlashcardSetList)
async def list_sets(
    owner: Owner = Depends(get_current_owner),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardSetList:
    items = await list_flashcard_sets(db, owner.id)
    return FlashcardSetList(items=items, total=len(items))


@router.post("/generate", response_model=FlashcardSet, status_code=201)
async def generate_set(
    body: GenerateRequest,
    owner: Owner = Depends(get_current_owner),
    db: aiosqlite.Connection = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
    cache: TTLStore = Depends(get_generation_cache),
) -> FlashcardSet:
    """Generate a flashcard set for a topic. Counts against the free-tier limit."""
    # Gate before the limiter so rejected requests do not use up the window
    usage = await check_usage(db, owner, settings.free_tier_limit)
    if not usage.allowed:
        raise HTTPException(
            status_code=402,
            detail="Free tier limit reached. Upgrade to Premium for unlimited access.",
        )

    rl = limiter.hit(
        f"generate:{owner.id}",
        settings.generate_rate_limit,
        settings.generate_rate_window_seconds,
    )
    if not rl.allowed:
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please try again later.",
            headers={"Retry-After": str(rl.retry_after_seconds)},
        )

    try:
        cards = await generate_flashcards(body.topic, cache=cache)
    except LLMUnavailableError as e:
        logger.error("Flashcard generation unavailable: %s", e)
        raise HTTPException(status_code=503, detail="AI generation is not configured.") from e
    except httpx.TimeoutException as e:
        raise HTTPException(
            status_code=408,
            detail="Request took too long. Please try again with a simpler request.",
        ) from e
    except httpx.HTTPStatusError as e:
        if e.response.status_code == 429:
            raise HTTPException(
                status_code=429, detail="Rate limit exceeded. Please try again in a moment."
            ) from e
        logger.warning("LLM provider returned %d for topic %r", e.response.status_code, body.topic)
        raise HTTPException(status_code=502, detail="AI provider error. Please try again.") from e
    except LLMResponseError as e:
        logger.warning("Unusable LLM output for topic %r: %s", body.topic, e)
        raise HTTPException(status_code=502, detail=str(e)) from e

    return await create_flashcard_set(db, owner.id, body.topic, cards)


@router.get("/due", response_model=FlashcardList)
async def get_due(
    limit: int = Query(default=20, ge=1, le=100),
    set_id: str | None = Query(default=None),
    owner: Owner = Depends(get_current_owner),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardList:
    """Return cards due for review today, never-reviewed first then oldest."""
    cards = await list_owner_flashcards(db, owner.id, set_id=set_id)
    due = sorted(select_due(cards, _today()), key=_due_sort_key)
    return FlashcardList(items=due[:limit], total=len(due))


@router.post("/cards/{card_id}/review", response_model=ReviewResult)
async def review_card(
    card_id: str,
    body: ReviewRequest,
    owner: Owner = Depends(get_current_owner),
    db: aiosqlite.Connection = Depends(get_db),
) -> ReviewResult:
    """Submit a rating for a flashcard and store its new schedule."""
    card = await get_owner_flashcard(db, card_id, owner.id)
    if not card:
        raise HTTPException(status_code=404, detail="Flashcard not found")

    new_state = compute_next_review(
        card.review_state(), body.rating, datetime.now(timezone.utc)
    )
    updated = await update_flashcard_review(db, card_id, new_state)
    if not updated:
        # Deleted between read and write
        raise HTTPException(status_code=404, detail="Flashcard not found")

    return ReviewResult(card=updated, interval_text=review_interval_text(updated.interval))


@router.get("/stats", response_model=FlashcardStats)
async def flashcard_stats(
    owner: Owner = Depends(get_current_owner),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardStats:
    """Return total cards, cards due today and a per-set breakdown."""
    today = _today()
    sets = await list_flashcard_sets(db, owner.id)
    per_set = [
        SetStats(
            set_id=s.id,
            title=s.title,
            total=len(s.cards),
            due=sum(1 for c in s.cards if is_due(c, today)),
        )
        for s in sets
    ]
    return FlashcardStats(
        total_cards=sum(s.total for s in per_set),
        due_today=sum(s.due for s in per_set),
        per_set=per_set,
    )


@router.get("/usage", response_model=UsageStatus)
async def usage_status(
    owner: Owner = Depends(get_current_owner),
    db: aiosqlite.Connection = Depends(get_db),
) -> UsageStatus:
    return await check_usage(db, owner, settings.free_tier_limit)


@router.get("/{set_id}", response_model=FlashcardSet)
async def get_set(
    set_id: str,
    owner: Owner = Depends(get_current_owner),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardSet:
    flashcard_set = await get_flashcard_set(db, set_id, owner.id)
    if not flashcard_set:
        raise HTTPException(status_code=404, detail="Flashcard set not found")
    return flashcard_set


@router.delete("/{set_id}", status_code=204)
async def remove_set(
    set_id: str,
    owner: Owner = Depends(get_current_owner),
    db: aiosqlite.Connection = Depends(get_db),
) -> None:
    deleted = await delete_flashcard_set(db, set_id, owner.id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Flashcard set not found")
