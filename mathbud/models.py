"""
Pydantic models shared across the Math Bud core.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Solution(BaseModel):
    """A solved problem as returned by the solve relay."""

    model_config = ConfigDict(frozen=True)

    explanation: str
    steps: list[str]


class HistoryItem(BaseModel):
    """One entry of the solve history. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    solution: Solution
    problem_type: Optional[str] = None


class TopicNote(BaseModel):
    """Knowledge accumulated for a single topic across solved problems."""

    topic: str
    concepts: list[str] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list)
    key_formulas: list[str] = Field(default_factory=list)
    last_updated: datetime
    problem_count: int = Field(default=0, ge=0)


class ChatMessage(BaseModel):
    """A single message in the tutoring chat transcript."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    is_user: bool
    timestamp: datetime
