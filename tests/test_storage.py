"""
Tests for SQLite persistence and the free-tier usage gate.
"""

from datetime import date, datetime, timezone

import pytest

from satprep.db.sqlite import (
    count_sets_since,
    create_flashcard_set,
    create_owner,
    delete_flashcard_set,
    get_flashcard_set,
    get_owner_flashcard,
    list_flashcard_sets,
    list_owner_flashcards,
    set_subscription_status,
    update_flashcard_review,
)
from satprep.models.flashcard import FlashcardReviewState, Rating
from satprep.models.owner import SubscriptionStatus
from satprep.services.flashcard_generator import clean_cards
from satprep.services.scheduler import compute_next_review
from satprep.services.usage_gate import check_usage, month_start

from tests.conftest import make_card


@pytest.fixture
def cards():
    return clean_cards([
        make_card("Comma Splice"),
        make_card("Quadratic Formula", tag="Math Calculator"),
    ])


@pytest.mark.asyncio
class TestFlashcardSets:
    async def test_new_cards_start_with_default_review_state(self, db, cards):
        owner = await create_owner(db, 30)
        created = await create_flashcard_set(db, owner.id, "Grammar basics", cards)

        assert created.title == "Grammar basics"
        assert [c.front for c in created.cards] == ["Comma Splice", "Quadratic Formula"]
        first = created.cards[0]
        assert first.ease_factor == 2.5
        assert first.interval == 0
        assert first.repetitions == 0
        assert first.next_review is None
        assert first.last_reviewed is None
        assert first.rating is None
        assert created.cards[1].section == "Math"

    async def test_sets_are_scoped_to_owner(self, db, cards):
        alice = await create_owner(db, 30)
        bob = await create_owner(db, 30)
        created = await create_flashcard_set(db, alice.id, "topic", cards)

        assert await get_flashcard_set(db, created.id, bob.id) is None
        assert await list_flashcard_sets(db, bob.id) == []
        assert await list_owner_flashcards(db, bob.id) == []
        assert await get_owner_flashcard(db, created.cards[0].id, bob.id) is None
        assert await delete_flashcard_set(db, created.id, bob.id) is False

    async def test_list_newest_first(self, db, cards):
        owner = await create_owner(db, 30)
        first = await create_flashcard_set(db, owner.id, "first", cards)
        second = await create_flashcard_set(db, owner.id, "second", cards)
        listed = await list_flashcard_sets(db, owner.id)
        assert [s.id for s in listed] == [second.id, first.id]

    async def test_delete_cascades_to_cards(self, db, cards):
        owner = await create_owner(db, 30)
        created = await create_flashcard_set(db, owner.id, "topic", cards)
        assert await delete_flashcard_set(db, created.id, owner.id) is True
        assert await list_owner_flashcards(db, owner.id) == []
        assert await get_owner_flashcard(db, created.cards[0].id, owner.id) is None

    async def test_review_state_round_trips(self, db, cards):
        owner = await create_owner(db, 30)
        created = await create_flashcard_set(db, owner.id, "topic", cards)
        card = created.cards[0]

        state = compute_next_review(
            card.review_state(), Rating.GOT_IT, datetime(2026, 5, 4, tzinfo=timezone.utc)
        )
        updated = await update_flashcard_review(db, card.id, state)

        assert updated is not None
        assert updated.review_state() == state
        assert updated.next_review == date(2026, 5, 5)
        assert updated.rating is Rating.GOT_IT
        stored = await get_owner_flashcard(db, card.id, owner.id)
        assert stored.review_state() == state

    async def test_update_missing_card(self, db):
        state = compute_next_review(FlashcardReviewState(), Rating.NO_IDEA)
        assert await update_flashcard_review(db, "missing", state) is None


@pytest.mark.asyncio
class TestUsageGate:
    async def test_free_owner_limited_per_month(self, db, cards):
        owner = await create_owner(db, 30)
        usage = await check_usage(db, owner, limit=1)
        assert usage.allowed and usage.usage_count == 0

        await create_flashcard_set(db, owner.id, "topic", cards)
        usage = await check_usage(db, owner, limit=1)
        assert not usage.allowed
        assert usage.usage_count == 1
        assert usage.limit == 1

    async def test_usage_resets_next_month(self, db, cards):
        owner = await create_owner(db, 30)
        await create_flashcard_set(db, owner.id, "topic", cards)
        next_month = datetime.now(timezone.utc).replace(day=28)
        next_month = next_month.replace(
            year=next_month.year + (next_month.month == 12),
            month=next_month.month % 12 + 1,
        )
        usage = await check_usage(db, owner, limit=1, now=next_month)
        assert usage.allowed
        assert usage.usage_count == 0

    async def test_subscribers_unlimited(self, db, cards):
        owner = await create_owner(db, 30)
        await create_flashcard_set(db, owner.id, "topic", cards)
        owner = await set_subscription_status(db, owner.id, SubscriptionStatus.TRIALING)
        usage = await check_usage(db, owner, limit=1)
        assert usage.allowed
        assert usage.has_subscription

    async def test_cancelled_subscription_is_free_tier(self, db, cards):
        owner = await create_owner(db, 30)
        await create_flashcard_set(db, owner.id, "topic", cards)
        owner = await set_subscription_status(db, owner.id, SubscriptionStatus.CANCELLED)
        assert not (await check_usage(db, owner, limit=1)).allowed

    async def test_count_since(self, db, cards):
        owner = await create_owner(db, 30)
        await create_flashcard_set(db, owner.id, "a", cards)
        await create_flashcard_set(db, owner.id, "b", cards)
        assert await count_sets_since(db, owner.id, month_start()) == 2


def test_month_start():
    now = datetime(2026, 7, 19, 13, 45, 12, tzinfo=timezone.utc)
    assert month_start(now) == datetime(2026, 7, 1, tzinfo=timezone.utc)
