"""
Tests for flashcard generation: cleaning, validation, caching.

The LLM call is replaced with an AsyncMock (see conftest.mock_chat_json).
"""

import pytest

from satprep.models.flashcard import Difficulty
from satprep.services.flashcard_generator import (
    MIN_CARDS,
    cache_key,
    clean_card,
    clean_cards,
    clean_math_notation,
    clean_text,
    generate_flashcards,
    section_for_tag,
    truncate_text,
)
from satprep.services.llm_service import LLMResponseError
from satprep.services.ttl_store import TTLStore

from tests.conftest import make_card


class TestCleaning:
    def test_caret_exponents_become_superscripts(self):
        assert clean_math_notation("x^2 + y^10") == "x² + y¹⁰"

    def test_clean_text_collapses_spaces_but_keeps_bullets(self):
        text = "Term  —   definition  \n\n\n\n•   example"
        assert clean_text(text) == "Term — definition\n\n• example"

    def test_truncate(self):
        assert truncate_text("short", 10) == "short"
        assert truncate_text("abcdefghijkl", 10) == "abcdefg..."

    def test_section_from_tag(self):
        assert section_for_tag("Math No Calculator") == "Math"
        assert section_for_tag("Grammar") == "Reading & Writing"


class TestValidation:
    def test_valid_card(self):
        card = clean_card(make_card("Quadratic Formula", tag="Math Calculator", difficulty="Hard"))
        assert card is not None
        assert card.difficulty is Difficulty.HARD
        assert card.section == "Math"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"front": "A front that is far too long"},
            {"front": ""},
            {"back": "No dash here but enough words to pass the length check fine"},
            {"back": "Short — too short"},
            {"difficulty": "Extreme"},
            {"difficulty": "hard"},
            {"difficulty": None},
            {"difficulty": 3},
            {"difficulty": ["Hard"]},
            {"tag": ""},
            {"tag": None},
        ],
    )
    def test_invalid_cards_are_dropped(self, overrides):
        raw = {**make_card("Comma Splice"), **overrides}
        assert clean_card(raw) is None

    def test_non_dict_dropped(self):
        assert clean_card("not a card") is None

    def test_duplicates_removed_case_insensitively(self):
        cards = clean_cards([
            make_card("Comma Splice"),
            make_card("comma splice"),
            make_card("Run-on Sentence"),
        ])
        assert [c.front for c in cards] == ["Comma Splice", "Run-on Sentence"]


@pytest.mark.asyncio
class TestGenerate:
    async def test_returns_cleaned_cards(self, mock_chat_json):
        cards = await generate_flashcards("SAT grammar")
        assert len(cards) == 6
        mock_chat_json.assert_awaited_once()
        assert "SAT grammar" in mock_chat_json.await_args.args[1]

    async def test_too_few_valid_cards(self, mock_chat_json):
        mock_chat_json.return_value = {
            "flashcards": [make_card("Comma Splice")] * MIN_CARDS
        }
        with pytest.raises(LLMResponseError):
            await generate_flashcards("commas")

    async def test_missing_flashcards_key(self, mock_chat_json):
        mock_chat_json.return_value = {"cards": []}
        with pytest.raises(LLMResponseError):
            await generate_flashcards("commas")

    async def test_cache_hit_skips_llm(self, mock_chat_json):
        cache = TTLStore(default_ttl=300)
        first = await generate_flashcards("Linear Equations", cache=cache)
        second = await generate_flashcards("  linear equations ", cache=cache)
        assert mock_chat_json.await_count == 1
        assert [c.front for c in first] == [c.front for c in second]
        assert cache_key("Linear Equations") in cache

    async def test_failed_generation_not_cached(self, mock_chat_json):
        cache = TTLStore(default_ttl=300)
        mock_chat_json.return_value = {"flashcards": []}
        with pytest.raises(LLMResponseError):
            await generate_flashcards("commas", cache=cache)
        assert len(cache) == 0
