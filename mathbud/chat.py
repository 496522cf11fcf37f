"""
Tutoring chat relay for Math Bud.

Forwards a single student question to Claude with a tutor system prompt and
returns the reply text. Also builds the messages that make up the chat
transcript kept by the study session.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import anthropic

from mathbud.errors import ChatError
from mathbud.history import ids
from mathbud.models import ChatMessage
from mathbud.solver import response_text

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

TUTOR_SYSTEM = """You are an expert math tutor for middle and high school students. \
Your role is to:

1. Help students understand mathematical concepts clearly and simply
2. Provide step-by-step explanations when solving problems
3. Encourage learning and build confidence
4. Ask clarifying questions when needed
5. Provide examples and analogies to make concepts easier to understand
6. Be patient, encouraging, and supportive
7. Focus on teaching understanding, not just giving answers
8. Use appropriate mathematical notation and terminology for the student's level

Guidelines:
- Always explain WHY we do each step in mathematical processes
- Break down complex problems into manageable parts
- Use clear, age-appropriate language
- If you're unsure about the student's level, ask clarifying questions
- Suggest practice problems when appropriate
- Connect new concepts to previously learned material when possible

Remember: Your goal is to help the student become confident and independent \
in their mathematical thinking."""

WELCOME_TEXT = (
    "Hi! I'm your AI Math Tutor. You can ask me any math questions, request "
    "explanations of concepts, or get help with problem-solving strategies. "
    "What would you like to learn about today?"
)

APOLOGY_TEXT = (
    "I'm sorry, I'm having trouble connecting right now. "
    "Please try again in a moment."
)


# ── Transcript messages ────────────────────────────────────────────────────


def new_message(text: str, is_user: bool) -> ChatMessage:
    return ChatMessage(
        id=ids.next_id(),
        text=text,
        is_user=is_user,
        timestamp=datetime.now(timezone.utc),
    )


def welcome_message() -> ChatMessage:
    """The assistant greeting that starts every fresh transcript."""
    return new_message(WELCOME_TEXT, is_user=False)


# ── Relay ──────────────────────────────────────────────────────────────────


def ask_tutor(message: str, settings: Settings) -> str:
    """Send one tutoring question to Claude and return the reply text.

    Args:
        message: The student's question.
        settings: Application configuration (API key, model, limits).

    Raises:
        ValueError: If *message* is not a non-blank string.
        ChatError: If the provider call fails.
    """
    if not isinstance(message, str) or not message.strip():
        raise ValueError("Message is required and must be a string")

    client = anthropic.Anthropic(api_key=settings.anthropic_api_key)
    logger.info("Chat request: %d chars", len(message))

    try:
        response = client.messages.create(
            model=settings.chat_model,
            max_tokens=settings.chat_max_tokens,
            temperature=settings.chat_temperature,
            system=TUTOR_SYSTEM,
            messages=[{"role": "user", "content": message.strip()}],
        )
    except anthropic.APIError as exc:
        logger.exception("Chat request failed")
        raise ChatError(
            "Failed to get response from AI tutor. Please try again."
        ) from exc

    return response_text(response)
