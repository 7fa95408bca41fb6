from satprep.models.flashcard import (
    Difficulty,
    Flashcard,
    FlashcardList,
    FlashcardReviewState,
    FlashcardSet,
    FlashcardSetList,
    FlashcardStats,
    GeneratedFlashcard,
    GenerateRequest,
    Rating,
    ReviewRequest,
    ReviewResult,
    SetStats,
)
from satprep.models.owner import Owner, SubscriptionStatus, UsageStatus

__all__ = [
    "Difficulty",
    "Flashcard",
    "FlashcardList",
    "FlashcardReviewState",
    "FlashcardSet",
    "FlashcardSetList",
    "FlashcardStats",
    "GeneratedFlashcard",
    "GenerateRequest",
    "Owner",
    "Rating",
    "ReviewRequest",
    "ReviewResult",
    "SetStats",
    "SubscriptionStatus",
    "UsageStatus",
]
