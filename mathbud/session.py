"""Study session: the single owner of a learner's notes, history and chat.

The core modules (``topics``, ``notes``, ``history``) are pure functions over
immutable inputs. ``StudySession`` threads their results through, holds the
current state, and saves each blob to the store after every transition it
makes. A failed save is logged by the store and never undoes the in-memory
update.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from typing import TYPE_CHECKING, Optional

from mathbud import chat as chat_relay
from mathbud import history as hist
from mathbud import notes as nts
from mathbud import store
from mathbud.errors import ChatError
from mathbud.models import ChatMessage, HistoryItem, Solution, TopicNote
from mathbud.topics import detect_topics

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)


class StudySession:
    """Holds and evolves one learner's study state.

    Args:
        notes: Initial topic → note mapping.
        history: Initial solve history, newest first.
        chat: Initial chat transcript; a welcome message is used when empty.
        persist: Save to the store after each change.
    """

    def __init__(
        self,
        notes: Optional[dict[str, TopicNote]] = None,
        history: Optional[list[HistoryItem]] = None,
        chat: Optional[list[ChatMessage]] = None,
        persist: bool = False,
    ) -> None:
        self._notes: dict[str, TopicNote] = dict(notes or {})
        self._history: list[HistoryItem] = list(history or [])
        self._chat: list[ChatMessage] = list(chat or []) or [
            chat_relay.welcome_message()
        ]
        self.persist = persist
        self._lock = threading.RLock()

    @classmethod
    def load(cls) -> StudySession:
        """Build a persisting session from whatever the store holds.

        An unreadable database yields an empty session; later saves keep
        failing quietly in the store.
        """
        try:
            store.init_db()
        except sqlite3.Error:
            logger.exception("Store unavailable; starting from empty state")
            return cls(persist=True)
        session = cls(
            notes=store.load_notes(),
            history=store.load_history(),
            chat=store.load_chat(),
            persist=True,
        )
        logger.info(
            "Loaded session: %d notes, %d history items, %d chat messages",
            len(session._notes), len(session._history), len(session._chat),
        )
        return session

    # ── Read-only views ────────────────────────────────────────────────────

    @property
    def notes(self) -> dict[str, TopicNote]:
        return dict(self._notes)

    @property
    def history(self) -> list[HistoryItem]:
        return list(self._history)

    @property
    def chat(self) -> list[ChatMessage]:
        return list(self._chat)

    # ── Solve pipeline ─────────────────────────────────────────────────────

    def record_solution(self, solution: Solution) -> tuple[HistoryItem, list[str]]:
        """Fold a solved problem into notes and history.

        Only call this with a solution the relay actually produced; a failed
        solve must leave notes and history untouched.

        Returns:
            The new history item and the detected topics.
        """
        topics = detect_topics(solution)
        with self._lock:
            self._notes = nts.update_notes(self._notes, solution, topics)
            item = hist.record(solution, topics[0])
            self._history = hist.append(self._history, item)
            self._save_notes()
            self._save_history()
        logger.info("Recorded solution id=%s topics=%s", item.id, topics)
        return item, topics

    def rename_topic(self, old_name: str, new_name: str) -> Optional[TopicNote]:
        """Rename a topic and return its note under the new name.

        Returns None if *old_name* does not exist.

        Raises:
            TopicConflictError: If *new_name* collides with another topic.
            InvalidTopicError: If *new_name* is blank.
        """
        with self._lock:
            if old_name not in self._notes:
                return None
            self._notes = nts.rename_topic(self._notes, old_name, new_name)
            self._save_notes()
            return self._notes[new_name.strip()]

    # ── Chat ───────────────────────────────────────────────────────────────

    def send_chat(self, text: str, settings: Settings) -> ChatMessage:
        """Ask the tutor a question and record both sides of the exchange.

        If the relay fails an apology is recorded as the reply and the
        ``ChatError`` is re-raised so the caller can report it.

        Raises:
            ValueError: If *text* is blank (nothing is recorded).
            ChatError: If the provider call fails.
        """
        if not isinstance(text, str) or not text.strip():
            raise ValueError("Message is required and must be a string")

        text = text.strip()
        with self._lock:
            self._chat = [*self._chat, chat_relay.new_message(text, is_user=True)]
            self._save_chat()

        # The provider round-trip runs outside the lock.
        try:
            reply_text = chat_relay.ask_tutor(text, settings)
        except ChatError:
            self._append_chat(chat_relay.APOLOGY_TEXT)
            raise
        return self._append_chat(reply_text)

    def _append_chat(self, text: str) -> ChatMessage:
        with self._lock:
            reply = chat_relay.new_message(text, is_user=False)
            self._chat = [*self._chat, reply]
            self._save_chat()
        return reply

    def clear_chat(self) -> list[ChatMessage]:
        """Reset the transcript to a single welcome message."""
        with self._lock:
            self._chat = [chat_relay.welcome_message()]
            self._save_chat()
            return list(self._chat)

    # ── Persistence ────────────────────────────────────────────────────────

    def _save_notes(self) -> None:
        if self.persist:
            store.save_notes(self._notes)

    def _save_history(self) -> None:
        if self.persist:
            store.save_history(self._history)

    def _save_chat(self) -> None:
        if self.persist:
            store.save_chat(self._chat)
