"""Tests for mathbud/chat.py — tutoring relay and transcript messages."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from mathbud.chat import TUTOR_SYSTEM, WELCOME_TEXT, ask_tutor, new_message, welcome_message
from mathbud.errors import ChatError


def make_settings(**overrides):
    """Return a minimal Settings-like object for testing."""
    settings = MagicMock()
    settings.anthropic_api_key = "test-key"
    settings.chat_model = "claude-haiku-4-5"
    settings.chat_max_tokens = 1000
    settings.chat_temperature = 0.7
    for k, v in overrides.items():
        setattr(settings, k, v)
    return settings


class TestMessages:
    def test_welcome_message(self):
        msg = welcome_message()
        assert msg.text == WELCOME_TEXT
        assert msg.is_user is False

    def test_new_messages_have_distinct_ids(self):
        a = new_message("one", is_user=True)
        b = new_message("two", is_user=False)
        assert a.id != b.id


class TestAskTutor:
    @pytest.mark.parametrize("message", ["", "   ", None, 42])
    def test_invalid_message_raises(self, message):
        with pytest.raises(ValueError, match="Message is required"):
            ask_tutor(message, make_settings())

    @patch("mathbud.chat.anthropic.Anthropic")
    def test_returns_reply_text(self, mock_cls):
        block = MagicMock()
        block.type = "text"
        block.text = "A quadratic has degree two."
        mock_client = MagicMock()
        mock_client.messages.create.return_value = MagicMock(content=[block])
        mock_cls.return_value = mock_client

        reply = ask_tutor("  What is a quadratic?  ", make_settings())

        assert reply == "A quadratic has degree two."
        kwargs = mock_client.messages.create.call_args.kwargs
        assert kwargs["system"] == TUTOR_SYSTEM
        assert kwargs["messages"] == [{"role": "user", "content": "What is a quadratic?"}]
        assert kwargs["temperature"] == 0.7

    @patch("mathbud.chat.anthropic.Anthropic")
    def test_provider_error_raises_chat_error(self, mock_cls):
        mock_client = MagicMock()
        mock_client.messages.create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )
        mock_cls.return_value = mock_client

        with pytest.raises(ChatError):
            ask_tutor("Explain slopes", make_settings())
