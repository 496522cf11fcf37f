"""Exceptions raised by the Math Bud core."""

from __future__ import annotations


class MathBudError(Exception):
    """Base class for all Math Bud errors."""


class InvalidImageError(MathBudError, ValueError):
    """The uploaded file is missing, not an image, or too large."""


class SolveError(MathBudError, RuntimeError):
    """The model provider failed to produce a solution."""


class ChatError(MathBudError, RuntimeError):
    """The model provider failed to answer a chat message."""


class InvalidTopicError(MathBudError, ValueError):
    """A topic name is blank."""


class TopicConflictError(MathBudError, ValueError):
    """A rename target collides (case-insensitively) with another topic."""

    def __init__(self, old_name: str, new_name: str, existing: str) -> None:
        super().__init__(
            f"Cannot rename {old_name!r} to {new_name!r}: "
            f"topic {existing!r} already exists."
        )
        self.old_name = old_name
        self.new_name = new_name
        self.existing = existing
