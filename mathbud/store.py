"""
SQLite-backed key/value persistence for Math Bud session state.

Schema
──────
table: kv
  key        TEXT PRIMARY KEY
  value      TEXT NOT NULL  (JSON blob)
  updated_at TEXT NOT NULL  (ISO-8601 UTC)

Keys
────
history  — list of HistoryItem, newest first
notes    — list of [topic, TopicNote] pairs
chat     — list of ChatMessage, oldest first
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from mathbud.models import ChatMessage, HistoryItem, TopicNote

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "mathbud.db"

HISTORY_KEY = "history"
NOTES_KEY = "notes"
CHAT_KEY = "chat"

_history_adapter = TypeAdapter(list[HistoryItem])
_notes_adapter = TypeAdapter(list[tuple[str, TopicNote]])
_chat_adapter = TypeAdapter(list[ChatMessage])


def _db_path() -> Path:
    """Return the database file path, honouring a DB_PATH env var if set."""
    env = os.getenv("DB_PATH")
    return Path(env) if env else DEFAULT_DB_PATH


@contextmanager
def _connect():
    """Yield a connected sqlite3.Connection, creating the file/dir if needed."""
    path = _db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db() -> None:
    """Create the kv table if it doesn't exist yet."""
    with _connect() as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key        TEXT PRIMARY KEY,
                value      TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
    logger.info("Store initialised at %s", _db_path())


# ── Raw key/value access ───────────────────────────────────────────────────


def get_value(key: str) -> Optional[str]:
    """Return the raw blob stored under *key*, or None if absent."""
    with _connect() as conn:
        row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
    return None if row is None else row["value"]


def put_value(key: str, value: str) -> None:
    """Insert or replace the blob stored under *key*."""
    now = datetime.now(timezone.utc).isoformat()
    with _connect() as conn:
        conn.execute(
            "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
            "updated_at = excluded.updated_at",
            (key, value, now),
        )


def _load(key: str, adapter: TypeAdapter):
    try:
        raw = get_value(key)
    except sqlite3.Error:
        logger.exception("Failed to read %r from store", key)
        return None
    if raw is None:
        return None
    try:
        return adapter.validate_json(raw)
    except ValueError as exc:
        logger.warning("Discarding malformed %r blob: %s", key, exc)
        return None


def _save(key: str, adapter: TypeAdapter, data) -> bool:
    try:
        put_value(key, adapter.dump_json(data).decode("utf-8"))
    except (sqlite3.Error, OSError):
        logger.exception("Failed to save %r to store", key)
        return False
    return True


# ── Typed blobs ────────────────────────────────────────────────────────────


def load_history() -> list[HistoryItem]:
    """Load the solve history, or an empty list if missing or malformed."""
    return _load(HISTORY_KEY, _history_adapter) or []


def save_history(items: list[HistoryItem]) -> bool:
    """Persist the solve history. Returns False (and logs) on failure."""
    return _save(HISTORY_KEY, _history_adapter, items)


def load_notes() -> dict[str, TopicNote]:
    """Load the topic notes, or an empty mapping if missing or malformed."""
    pairs = _load(NOTES_KEY, _notes_adapter) or []
    return dict(pairs)


def save_notes(notes: dict[str, TopicNote]) -> bool:
    """Persist the topic notes as a list of ``[topic, note]`` pairs."""
    return _save(NOTES_KEY, _notes_adapter, list(notes.items()))


def load_chat() -> list[ChatMessage]:
    """Load the chat transcript, or an empty list if missing or malformed."""
    return _load(CHAT_KEY, _chat_adapter) or []


def save_chat(messages: list[ChatMessage]) -> bool:
    """Persist the chat transcript."""
    return _save(CHAT_KEY, _chat_adapter, messages)
