import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from satprep.config import settings
from satprep.models.flashcard import (
    Flashcard,
    FlashcardReviewState,
    FlashcardSet,
    GeneratedFlashcard,
)
from satprep.models.owner import Owner, SubscriptionStatus

_db_path: Path | None = None

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS owners (
    id                  TEXT PRIMARY KEY,
    subscription_status TEXT,
    created_at          TEXT NOT NULL DEFAULT (datetime('now')),
    expires_at          TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS flashcard_sets (
    id          TEXT PRIMARY KEY,
    owner_id    TEXT NOT NULL REFERENCES owners(id) ON DELETE CASCADE,
    title       TEXT NOT NULL,
    topic       TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_sets_owner ON flashcard_sets(owner_id, created_at);

CREATE TABLE IF NOT EXISTS flashcards (
    id            TEXT PRIMARY KEY,
    set_id        TEXT NOT NULL REFERENCES flashcard_sets(id) ON DELETE CASCADE,
    position      INTEGER NOT NULL DEFAULT 0,
    front         TEXT NOT NULL,
    back          TEXT NOT NULL,
    difficulty    TEXT NOT NULL,
    tag           TEXT NOT NULL DEFAULT '',
    section       TEXT NOT NULL DEFAULT '',
    ease_factor   REAL NOT NULL DEFAULT 2.5,
    interval      INTEGER NOT NULL DEFAULT 0,
    repetitions   INTEGER NOT NULL DEFAULT 0,
    last_reviewed TEXT,
    next_review   TEXT,
    rating        TEXT,
    created_at    TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at    TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_flashcards_set ON flashcards(set_id, position);
CREATE INDEX IF NOT EXISTS idx_flashcards_review ON flashcards(next_review);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""


async def init_sqlite(data_dir: Path) -> None:
    global _db_path
    _db_path = data_dir / settings.sqlite_filename
    async with aiosqlite.connect(_db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    assert _db_path is not None, "SQLite not initialized"
    async with aiosqlite.connect(_db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys=ON")
        yield db


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


# --- Owners (anonymous sessions) ---


def _row_to_owner(row: aiosqlite.Row) -> Owner:
    return Owner(**dict(row))


async def create_owner(db: aiosqlite.Connection, duration_days: int) -> Owner:
    owner_id = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    expires = now + timedelta(days=duration_days)
    await db.execute(
        "INSERT INTO owners (id, created_at, expires_at) VALUES (?, ?, ?)",
        (
            owner_id,
            now.strftime("%Y-%m-%d %H:%M:%S"),
            expires.strftime("%Y-%m-%d %H:%M:%S"),
        ),
    )
    await db.commit()
    return await get_owner(db, owner_id)  # type: ignore[return-value]


async def get_owner(db: aiosqlite.Connection, owner_id: str) -> Owner | None:
    cursor = await db.execute("SELECT * FROM owners WHERE id = ?", (owner_id,))
    row = await cursor.fetchone()
    return _row_to_owner(row) if row else None


async def set_subscription_status(
    db: aiosqlite.Connection,
    owner_id: str,
    status: SubscriptionStatus | None,
) -> Owner | None:
    await db.execute(
        "UPDATE owners SET subscription_status = ? WHERE id = ?",
        (status.value if status else None, owner_id),
    )
    await db.commit()
    return await get_owner(db, owner_id)


# --- Flashcard sets ---


def _row_to_flashcard(row: aiosqlite.Row) -> Flashcard:
    return Flashcard(**dict(row))


async def create_flashcard_set(
    db: aiosqlite.Connection,
    owner_id: str,
    topic: str,
    cards: list[GeneratedFlashcard],
    title: str | None = None,
) -> FlashcardSet:
    """Insert a set and its cards with default review state, in one transaction."""
    set_id = str(uuid.uuid4())
    now = _now()
    await db.execute(
        """INSERT INTO flashcard_sets
           (id, owner_id, title, topic, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (set_id, owner_id, title or topic, topic, now, now),
    )
    for position, card in enumerate(cards):
        await db.execute(
            """INSERT INTO flashcards
               (id, set_id, position, front, back, difficulty, tag, section,
                created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                str(uuid.uuid4()),
                set_id,
                position,
                card.front,
                card.back,
                card.difficulty.value,
                card.tag,
                card.section,
                now,
                now,
            ),
        )
    await db.commit()
    return await get_flashcard_set(db, set_id, owner_id)  # type: ignore[return-value]


async def _cards_for_sets(
    db: aiosqlite.Connection, set_ids: list[str]
) -> dict[str, list[Flashcard]]:
    by_set: dict[str, list[Flashcard]] = {set_id: [] for set_id in set_ids}
    if not set_ids:
        return by_set
    placeholders = ", ".join("?" for _ in set_ids)
    cursor = await db.execute(
        f"SELECT * FROM flashcards WHERE set_id IN ({placeholders}) "  # noqa: S608
        "ORDER BY position ASC",
        set_ids,
    )
    for row in await cursor.fetchall():
        card = _row_to_flashcard(row)
        by_set[card.set_id].append(card)
    return by_set


async def get_flashcard_set(
    db: aiosqlite.Connection, set_id: str, owner_id: str
) -> FlashcardSet | None:
    cursor = await db.execute(
        "SELECT * FROM flashcard_sets WHERE id = ? AND owner_id = ?",
        (set_id, owner_id),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    cards = await _cards_for_sets(db, [set_id])
    return FlashcardSet(**dict(row), cards=cards[set_id])


async def list_flashcard_sets(
    db: aiosqlite.Connection, owner_id: str
) -> list[FlashcardSet]:
    cursor = await db.execute(
        "SELECT * FROM flashcard_sets WHERE owner_id = ? ORDER BY created_at DESC, rowid DESC",
        (owner_id,),
    )
    rows = await cursor.fetchall()
    cards = await _cards_for_sets(db, [row["id"] for row in rows])
    return [FlashcardSet(**dict(row), cards=cards[row["id"]]) for row in rows]


async def delete_flashcard_set(
    db: aiosqlite.Connection, set_id: str, owner_id: str
) -> bool:
    cursor = await db.execute(
        "DELETE FROM flashcard_sets WHERE id = ? AND owner_id = ?", (set_id, owner_id)
    )
    await db.commit()
    return (cursor.rowcount or 0) > 0


async def count_sets_since(
    db: aiosqlite.Connection, owner_id: str, since: datetime
) -> int:
    cursor = await db.execute(
        "SELECT COUNT(*) FROM flashcard_sets WHERE owner_id = ? AND created_at >= ?",
        (owner_id, since.strftime("%Y-%m-%d %H:%M:%S")),
    )
    row = await cursor.fetchone()
    return row[0] if row else 0


# --- Flashcards / review state ---


async def list_owner_flashcards(
    db: aiosqlite.Connection,
    owner_id: str,
    set_id: str | None = None,
) -> list[Flashcard]:
    if set_id:
        cursor = await db.execute(
            """SELECT f.* FROM flashcards f
               JOIN flashcard_sets s ON s.id = f.set_id
               WHERE s.owner_id = ? AND f.set_id = ?
               ORDER BY f.position ASC""",
            (owner_id, set_id),
        )
    else:
        cursor = await db.execute(
            """SELECT f.* FROM flashcards f
               JOIN flashcard_sets s ON s.id = f.set_id
               WHERE s.owner_id = ?
               ORDER BY s.created_at ASC, f.position ASC""",
            (owner_id,),
        )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows]


async def get_owner_flashcard(
    db: aiosqlite.Connection, card_id: str, owner_id: str
) -> Flashcard | None:
    cursor = await db.execute(
        """SELECT f.* FROM flashcards f
           JOIN flashcard_sets s ON s.id = f.set_id
           WHERE f.id = ? AND s.owner_id = ?""",
        (card_id, owner_id),
    )
    row = await cursor.fetchone()
    return _row_to_flashcard(row) if row else None


async def update_flashcard_review(
    db: aiosqlite.Connection,
    card_id: str,
    state: FlashcardReviewState,
) -> Flashcard | None:
    """Persist a scheduler result. Concurrent grades of one card are last-write-wins."""
    now = _now()
    await db.execute(
        """UPDATE flashcards
           SET ease_factor = ?, interval = ?, repetitions = ?,
               last_reviewed = ?, next_review = ?, rating = ?, updated_at = ?
           WHERE id = ?""",
        (
            state.ease_factor,
            state.interval,
            state.repetitions,
            _iso(state.last_reviewed),
            _iso(state.next_review),
            state.rating.value if state.rating else None,
            now,
            card_id,
        ),
    )
    await db.commit()
    cursor = await db.execute("SELECT * FROM flashcards WHERE id = ?", (card_id,))
    row = await cursor.fetchone()
    return _row_to_flashcard(row) if row else None
