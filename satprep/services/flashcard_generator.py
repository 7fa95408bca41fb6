"""
Flashcard generation service.

For a study topic:
  1. Returns cached cards when the same topic was generated recently
  2. Otherwise calls the LLM via llm_service.chat_json()
  3. Parses {"flashcards": [{"front", "back", "difficulty", "tag"}]}
  4. Cleans, validates and de-duplicates the cards

Invalid cards are logged and dropped. Too few surviving cards raises
LLMResponseError; LLMUnavailableError and httpx errors propagate.
"""
from __future__ import annotations

import logging
import re

from satprep.models.flashcard import Difficulty, GeneratedFlashcard
from satprep.services.llm_service import LLMResponseError, chat_json
from satprep.services.ttl_store import TTLStore

logger = logging.getLogger(__name__)

MIN_CARDS = 5
MAX_FRONT_CHARS = 50
MAX_BACK_CHARS = 350
MIN_BACK_WORDS = 8
MAX_BACK_WORDS = 70  # definition plus bullet examples
MAX_FRONT_WORDS = 4

SYSTEM_PROMPT = (
    "You are an expert SAT tutor creating flashcards to help students master key concepts. "
    "Explanations should be clear, educational and test-oriented.\n"
    "Respond ONLY with valid JSON in exactly this structure:\n"
    '{"flashcards": [{"front": "string", "back": "string", '
    '"difficulty": "Easy", "tag": "Grammar"}]}\n'
    "Rules:\n"
    "- front is the SAT skill or rule name, 1-4 words.\n"
    '- back follows "TERM — SAT tests: ... | How it appears: ... | Tip: ..." '
    "with an em dash after the term.\n"
    "- After the definition, optionally add 1-2 short examples on new lines starting with •.\n"
    "- difficulty is one of Easy, Medium, Hard.\n"
    "- tag is one of Vocab, Grammar, Reading, Math No Calculator, Math Calculator, "
    "Functions, Statistics, Rhetoric.\n"
    "- Use superscript characters for exponents (x², not x^2).\n"
    "- Use **bold** sparingly for 1-2 key terms.\n"
    "- Generate 10-15 flashcards. No markdown, headings or commentary."
)

_SUPERSCRIPTS = str.maketrans("0123456789", "⁰¹²³⁴⁵⁶⁷⁸⁹")
_CARET_POWER = re.compile(r"\^(\d+)")
_INLINE_SPACE = re.compile(r"[ \t\f\v]+")
_SPACE_AROUND_NEWLINE = re.compile(r" *\n *")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")


def _user_prompt(topic: str) -> str:
    return (
        f"Create SAT flashcards about: {topic}. Generate 10-15 flashcards. "
        "Terms must be 1-4 words. Use actual superscripts for exponents (x² not x^2)."
    )


def cache_key(topic: str) -> str:
    return f"generate-flashcards:{topic.strip().lower()}"


def clean_math_notation(text: str) -> str:
    """Replace caret exponents with superscript digits: x^2 -> x²."""
    return _CARET_POWER.sub(lambda m: m.group(1).translate(_SUPERSCRIPTS), text)


def clean_text(text: str) -> str:
    text = _INLINE_SPACE.sub(" ", text)
    text = _SPACE_AROUND_NEWLINE.sub("\n", text)
    return _EXTRA_NEWLINES.sub("\n\n", text).strip()


def truncate_text(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def section_for_tag(tag: str) -> str:
    return "Math" if "math" in tag.lower() else "Reading & Writing"


def card_errors(front: str, back: str, difficulty: object, tag: str) -> list[str]:
    errors: list[str] = []

    front_words = len(front.split())
    if front_words < 1 or front_words > MAX_FRONT_WORDS:
        errors.append(f"front must be 1-{MAX_FRONT_WORDS} words (found {front_words})")

    back_words = len(back.split())
    if "—" not in back:
        errors.append("back must include an em dash separating term and definition")
    if back_words < MIN_BACK_WORDS:
        errors.append(f"back is too short (found {back_words} words)")
    if back_words > MAX_BACK_WORDS:
        errors.append(f"back is too long (found {back_words} words)")

    if not isinstance(difficulty, str) or difficulty not in {d.value for d in Difficulty}:
        errors.append("difficulty must be Easy, Medium, or Hard")
    if not tag:
        errors.append("tag is required")
    return errors


def clean_card(raw: object) -> GeneratedFlashcard | None:
    """Clean one raw card from the model. Returns None when it fails validation."""
    if not isinstance(raw, dict):
        return None

    front = raw.get("front")
    back = raw.get("back")
    tag = raw.get("tag")
    front = clean_math_notation(clean_text(front)) if isinstance(front, str) else ""
    back = clean_math_notation(clean_text(back)) if isinstance(back, str) else ""
    tag = clean_text(tag) if isinstance(tag, str) else ""
    front = truncate_text(front, MAX_FRONT_CHARS)
    back = truncate_text(back, MAX_BACK_CHARS)
    difficulty = raw.get("difficulty")

    errors = card_errors(front, back, difficulty, tag)
    if errors:
        logger.warning("Dropping invalid flashcard %r: %s", front, "; ".join(errors))
        return None

    return GeneratedFlashcard(
        front=front,
        back=back,
        difficulty=difficulty,
        tag=tag,
        section=section_for_tag(tag),
    )


def clean_cards(raw_cards: list) -> list[GeneratedFlashcard]:
    """Clean, validate and de-duplicate (by case-insensitive front) a batch of cards."""
    seen: set[str] = set()
    cards: list[GeneratedFlashcard] = []
    for raw in raw_cards:
        card = clean_card(raw)
        if card is None:
            continue
        key = card.front.lower().strip()
        if key in seen:
            continue
        seen.add(key)
        cards.append(card)
    return cards


async def generate_flashcards(
    topic: str,
    cache: TTLStore | None = None,
) -> list[GeneratedFlashcard]:
    """
    Produce a validated list of flashcards for ``topic``.

    Raises LLMResponseError when the model output is unusable or yields
    fewer than MIN_CARDS valid cards.
    """
    key = cache_key(topic)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            logger.info("Using cached flashcards for topic %r", topic)
            return [card.model_copy() for card in cached]

    result = await chat_json(SYSTEM_PROMPT, _user_prompt(topic))

    raw_cards = result.get("flashcards")
    if not isinstance(raw_cards, list):
        raise LLMResponseError("Invalid response format from model.")

    cards = clean_cards(raw_cards)
    if len(cards) < MIN_CARDS:
        raise LLMResponseError(
            f"Generated too few valid flashcards ({len(cards)}). Please try again."
        )

    if cache is not None:
        cache.set(key, cards)

    return cards
