"""
Spaced-repetition review scheduler (SM-2 derived).

The full SM-2 quality scale (0-5) is collapsed into three self-assessment
ratings:

  got-it   repetitions + 1; interval 1, then 3, then interval * ease factor;
           ease factor + 0.1
  almost   repetitions - 1 (floor 0); interval halved (floor 1);
           ease factor - 0.15
  no-idea  repetitions reset to 0; interval 1; ease factor - 0.2

The ease factor stays within [1.3, 5.0] and intervals are capped at
MAX_INTERVAL_DAYS so next-review dates stay representable. Every function
here is pure: the only clock input is the ``now`` / ``today`` argument,
which defaults to the current UTC time when omitted.
"""
from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone
from typing import TypeVar

from satprep.models.flashcard import (
    MAX_EASE_FACTOR,
    MAX_INTERVAL_DAYS,
    MIN_EASE_FACTOR,
    FlashcardReviewState,
    Rating,
)

S = TypeVar("S", bound=FlashcardReviewState)

_FIRST_INTERVAL = 1
_SECOND_INTERVAL = 3

# rating -> ease factor delta
_EASE_DELTA = {
    Rating.GOT_IT: 0.1,
    Rating.ALMOST: -0.15,
    Rating.NO_IDEA: -0.2,
}


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _as_date(value: date | datetime) -> date:
    # datetime is a subclass of date, so check it first
    if isinstance(value, datetime):
        return value.date()
    return value


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_state(state: S) -> S:
    """Pull stored numeric fields back into their valid ranges.

    State written by older versions (or corrupted rows) may carry an ease
    factor outside its bounds, an oversized interval or negative counters.
    """
    ease_factor = state.ease_factor
    if math.isnan(ease_factor):
        ease_factor = MIN_EASE_FACTOR
    ease_factor = min(MAX_EASE_FACTOR, max(MIN_EASE_FACTOR, ease_factor))
    interval = min(MAX_INTERVAL_DAYS, max(0, state.interval))
    repetitions = max(0, state.repetitions)

    if (
        ease_factor == state.ease_factor
        and interval == state.interval
        and repetitions == state.repetitions
    ):
        return state
    return state.model_copy(
        update={
            "ease_factor": ease_factor,
            "interval": interval,
            "repetitions": repetitions,
        }
    )


def compute_next_review(
    state: S,
    rating: Rating | str,
    now: date | datetime | None = None,
) -> S:
    """Return a copy of ``state`` updated for one grading event.

    ``last_reviewed`` becomes ``now``'s date and ``next_review`` that date
    plus the new interval. The input state is left untouched.
    """
    rating = Rating(rating)
    today = _as_date(now) if now is not None else _utc_today()
    current = clamp_state(state)

    ease_factor = current.ease_factor
    interval = current.interval
    repetitions = current.repetitions

    if rating is Rating.GOT_IT:
        if repetitions == 0:
            new_interval = _FIRST_INTERVAL
        elif repetitions == 1:
            new_interval = _SECOND_INTERVAL
        else:
            # Uses the ease factor from before this review
            new_interval = _round_half_up(interval * ease_factor)
        new_repetitions = repetitions + 1
    elif rating is Rating.ALMOST:
        new_interval = _round_half_up(interval * 0.5)
        new_repetitions = max(0, repetitions - 1)
    else:
        new_interval = 1
        new_repetitions = 0

    new_interval = min(MAX_INTERVAL_DAYS, max(1, new_interval))
    new_ease_factor = min(
        MAX_EASE_FACTOR, max(MIN_EASE_FACTOR, ease_factor + _EASE_DELTA[rating])
    )
    try:
        next_review = today + timedelta(days=new_interval)
    except OverflowError:
        next_review = date.max

    return current.model_copy(
        update={
            "ease_factor": new_ease_factor,
            "interval": new_interval,
            "repetitions": new_repetitions,
            "last_reviewed": today,
            "next_review": next_review,
            "rating": rating,
        }
    )


def is_due(state: FlashcardReviewState, today: date | datetime | None = None) -> bool:
    """A card is due when it was never scheduled or its review date has arrived."""
    if state.next_review is None:
        return True
    today = _as_date(today) if today is not None else _utc_today()
    return state.next_review <= today


def select_due(states: Iterable[S], today: date | datetime | None = None) -> list[S]:
    """Filter to due states. Order follows the input; callers sort if needed."""
    today = _as_date(today) if today is not None else _utc_today()
    return [s for s in states if is_due(s, today)]


def review_interval_text(interval: int) -> str:
    if interval <= 0:
        return "again-today"
    if interval == 1:
        return "1 day"
    if interval < 7:
        return f"{interval} days"
    if interval < 30:
        return f"{_round_half_up(interval / 7)} weeks"
    return f"{_round_half_up(interval / 30)} months"
