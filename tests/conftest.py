"""
Shared test fixtures.

Provides:
- Settings pointed at a temporary data directory with an API key set
- An initialized SQLite connection
- An httpx client bound to a fresh FastAPI app (LLM calls are mocked per test)
- Sample LLM payloads
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio

from satprep import create_app
from satprep.config import settings
from satprep.db import init_all_databases
from satprep.db.sqlite import get_db


@pytest.fixture
def tmp_settings(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "data_dir", tmp_path)
    monkeypatch.setattr(settings, "openai_api_key", "test-key")
    monkeypatch.setattr(settings, "free_tier_limit", 1)
    monkeypatch.setattr(settings, "generate_rate_limit", 25)
    return settings


@pytest_asyncio.fixture
async def db(tmp_settings):
    await init_all_databases(tmp_settings.data_dir)
    async for conn in get_db():
        yield conn


@pytest_asyncio.fixture
async def client(tmp_settings):
    app = create_app()
    # ASGITransport does not run the lifespan, so initialize storage directly
    await init_all_databases(tmp_settings.data_dir)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def make_card(front: str, tag: str = "Grammar", difficulty: str = "Medium") -> dict:
    return {
        "front": front,
        "back": (
            f"{front} — SAT tests: applying the rule in context | "
            "How it appears: answer choices that differ by one word | "
            "Tip: **read** the full sentence first"
        ),
        "difficulty": difficulty,
        "tag": tag,
    }


@pytest.fixture
def llm_payload() -> dict:
    """A valid six-card model reply."""
    return {
        "flashcards": [
            make_card("Subject-Verb Agreement"),
            make_card("Pronoun Clarity"),
            make_card("Comma Splice"),
            make_card("Quadratic Formula", tag="Math Calculator", difficulty="Hard"),
            make_card("Parallel Lines", tag="Math No Calculator", difficulty="Easy"),
            make_card("Transition Words", tag="Rhetoric"),
        ]
    }


@pytest.fixture
def mock_chat_json(llm_payload):
    """Patch the LLM call used by the flashcard generator."""
    with patch(
        "satprep.services.flashcard_generator.chat_json",
        new=AsyncMock(return_value=llm_payload),
    ) as mock:
        yield mock
