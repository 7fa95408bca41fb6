from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Rating(str, Enum):
    GOT_IT = "got-it"
    ALMOST = "almost"
    NO_IDEA = "no-idea"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
MAX_EASE_FACTOR = 5.0
MAX_INTERVAL_DAYS = 36500  # about a century


class FlashcardReviewState(BaseModel):
    """Per-card scheduling record. Values are not range-checked here; the scheduler clamps them."""

    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0             # days until next review
    repetitions: int = 0          # consecutive got-it recalls since last reset
    last_reviewed: date | None = None
    next_review: date | None = None  # None = due immediately
    rating: Rating | None = None


class Flashcard(FlashcardReviewState):
    id: str
    set_id: str
    front: str
    back: str
    difficulty: Difficulty
    tag: str
    section: str
    created_at: str
    updated_at: str

    def review_state(self) -> FlashcardReviewState:
        return FlashcardReviewState(
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetitions=self.repetitions,
            last_reviewed=self.last_reviewed,
            next_review=self.next_review,
            rating=self.rating,
        )


class FlashcardList(BaseModel):
    items: list[Flashcard]
    total: int


class FlashcardSet(BaseModel):
    id: str
    owner_id: str
    title: str
    topic: str
    cards: list[Flashcard] = []
    created_at: str
    updated_at: str


class FlashcardSetList(BaseModel):
    items: list[FlashcardSet]
    total: int


class GeneratedFlashcard(BaseModel):
    """A cleaned, validated card as produced by the generator, before it is stored."""

    front: str
    back: str
    difficulty: Difficulty
    tag: str
    section: str


class GenerateRequest(BaseModel):
    topic: str = Field(min_length=1, max_length=200)

    @field_validator("topic", mode="before")
    @classmethod
    def strip_topic(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value


class ReviewRequest(BaseModel):
    rating: Rating


class ReviewResult(BaseModel):
    card: Flashcard
    interval_text: str


class SetStats(BaseModel):
    set_id: str
    title: str
    total: int
    due: int


class FlashcardStats(BaseModel):
    total_cards: int
    due_today: int
    per_set: list[SetStats]
