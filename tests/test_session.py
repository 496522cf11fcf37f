"""Tests for mathbud/session.py — the solve pipeline and persisted state."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

import mathbud.store as store
from mathbud.chat import APOLOGY_TEXT, WELCOME_TEXT
from mathbud.errors import ChatError, TopicConflictError
from mathbud.models import Solution
from mathbud.session import StudySession


@pytest.fixture
def quadratic() -> Solution:
    return Solution(
        explanation="This is a quadratic equation. We solve by factoring.",
        steps=["Step one: x^2 - 5x + 6 = 0", "Step two: factor into (x-2)(x-3)=0"],
    )


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "session.db"))
    yield


# ── Solve pipeline ─────────────────────────────────────────────────────────────


class TestRecordSolution:
    def test_updates_notes_and_history(self, quadratic):
        session = StudySession()
        item, topics = session.record_solution(quadratic)

        assert topics == ["Quadratic Equations", "Factoring"]
        assert item.problem_type == "Quadratic Equations"
        assert session.history == [item]
        assert set(session.notes) == {"Quadratic Equations", "Factoring"}
        assert session.notes["Factoring"].problem_count == 1

    def test_general_math_fallback(self):
        session = StudySession()
        item, topics = session.record_solution(Solution(explanation="Add.", steps=["5"]))
        assert topics == ["General Math"]
        assert item.problem_type == "General Math"

    def test_views_are_copies(self, quadratic):
        session = StudySession()
        session.record_solution(quadratic)
        session.history.clear()
        session.notes.clear()
        assert len(session.history) == 1
        assert len(session.notes) == 2


class TestRenameTopic:
    def test_rename(self, quadratic):
        session = StudySession()
        session.record_solution(quadratic)

        note = session.rename_topic("Factoring", "Factorising")

        assert note.topic == "Factorising"
        assert "Factoring" not in session.notes

    def test_missing_returns_none(self):
        assert StudySession().rename_topic("Nope", "Other") is None

    def test_conflict_leaves_state_unchanged(self, quadratic):
        session = StudySession()
        session.record_solution(quadratic)
        before = session.notes

        with pytest.raises(TopicConflictError):
            session.rename_topic("Factoring", "quadratic equations")

        assert session.notes == before


# ── Chat ───────────────────────────────────────────────────────────────────────


class TestChat:
    def test_fresh_transcript_has_welcome(self):
        chat = StudySession().chat
        assert [m.text for m in chat] == [WELCOME_TEXT]

    @patch("mathbud.session.chat_relay.ask_tutor", return_value="Sure, let's go.")
    def test_send_records_both_sides(self, mock_ask):
        session = StudySession()
        reply = session.send_chat("Help with fractions", MagicMock())

        assert reply.text == "Sure, let's go."
        assert [(m.text, m.is_user) for m in session.chat[1:]] == [
            ("Help with fractions", True),
            ("Sure, let's go.", False),
        ]

    @patch("mathbud.session.chat_relay.ask_tutor", side_effect=ChatError("down"))
    def test_failure_records_apology_and_raises(self, mock_ask):
        session = StudySession()
        with pytest.raises(ChatError):
            session.send_chat("Help", MagicMock())
        assert session.chat[-1].text == APOLOGY_TEXT

    def test_message_is_stripped_once(self):
        session = StudySession()
        settings = MagicMock()
        with patch("mathbud.session.chat_relay.ask_tutor", return_value="ok") as mock_ask:
            session.send_chat("  Help with fractions  ", settings)

        mock_ask.assert_called_once_with("Help with fractions", settings)
        assert session.chat[1].text == "Help with fractions"

    def test_pending_reply_does_not_block_other_updates(self, quadratic):
        session = StudySession()
        asked = threading.Event()
        release = threading.Event()

        def slow_tutor(message, settings):
            asked.set()
            release.wait(timeout=5)
            return "Here is a hint."

        with patch("mathbud.session.chat_relay.ask_tutor", side_effect=slow_tutor):
            worker = threading.Thread(target=session.send_chat, args=("Hint?", MagicMock()))
            worker.start()
            assert asked.wait(timeout=5)

            session.record_solution(quadratic)
            assert worker.is_alive()
            assert len(session.history) == 1
            assert session.chat[-1].text == "Hint?"

            release.set()
            worker.join(timeout=5)

        assert not worker.is_alive()
        assert session.chat[-1].text == "Here is a hint."

    def test_blank_message_rejected_without_recording(self):
        session = StudySession()
        with pytest.raises(ValueError):
            session.send_chat("  ", MagicMock())
        assert len(session.chat) == 1

    @patch("mathbud.session.chat_relay.ask_tutor", return_value="ok")
    def test_clear_resets_to_welcome(self, mock_ask):
        session = StudySession()
        session.send_chat("hi", MagicMock())
        session.clear_chat()
        assert [m.text for m in session.chat] == [WELCOME_TEXT]


# ── Persistence ────────────────────────────────────────────────────────────────


class TestPersistence:
    def test_state_survives_reload(self, temp_db, quadratic):
        session = StudySession.load()
        session.record_solution(quadratic)
        session.rename_topic("Factoring", "Factorising")

        reloaded = StudySession.load()
        assert reloaded.notes == session.notes
        assert reloaded.history == session.history

    def test_non_persisting_session_writes_nothing(self, temp_db, quadratic):
        StudySession().record_solution(quadratic)
        store.init_db()
        assert store.load_history() == []

    def test_failed_save_keeps_memory_state(self, temp_db, quadratic):
        session = StudySession.load()
        with patch("mathbud.store.put_value", side_effect=OSError("read-only")):
            session.record_solution(quadratic)
        assert len(session.history) == 1

    def test_corrupt_blob_starts_empty(self, temp_db):
        store.init_db()
        store.put_value(store.NOTES_KEY, "garbage")
        assert StudySession.load().notes == {}

    def test_unreadable_database_starts_empty(self, temp_db, tmp_path, quadratic):
        (tmp_path / "session.db").write_bytes(b"this is not a sqlite database" * 10)

        session = StudySession.load()
        assert session.notes == {}
        assert session.history == []
        assert [m.text for m in session.chat] == [WELCOME_TEXT]

        session.record_solution(quadratic)
        assert len(session.history) == 1
