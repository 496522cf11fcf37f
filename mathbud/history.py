"""
Solve history for Math Bud.

A plain list of ``HistoryItem`` objects, newest first, capped at
``MAX_HISTORY`` entries. Items are identified by a millisecond timestamp
string; a monotonic tie-break keeps identifiers unique when two solves land
in the same millisecond.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Optional

from mathbud.models import HistoryItem, Solution

logger = logging.getLogger(__name__)

MAX_HISTORY = 50


class IdGenerator:
    """Produce strictly increasing, time-derived string identifiers."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            now_ms = time.time_ns() // 1_000_000
            self._last = now_ms if now_ms > self._last else self._last + 1
            return str(self._last)


#: Process-wide generator shared by history items and chat messages.
ids = IdGenerator()


def record(solution: Solution, primary_topic: Optional[str]) -> HistoryItem:
    """Create a new history item for a solved problem.

    Args:
        solution: The solved problem.
        primary_topic: The first detected topic, stored as ``problem_type``.

    Returns:
        A new, immutable ``HistoryItem``.
    """
    return HistoryItem(
        id=ids.next_id(),
        timestamp=datetime.now(timezone.utc),
        solution=solution,
        problem_type=primary_topic,
    )


def append(log: list[HistoryItem], item: HistoryItem) -> list[HistoryItem]:
    """Return a new log with *item* first, dropping anything past the cap."""
    updated = [item, *log[: MAX_HISTORY - 1]]
    logger.info("Appended history item id=%s (%d items)", item.id, len(updated))
    return updated


def get_item(log: list[HistoryItem], item_id: str) -> Optional[HistoryItem]:
    """Return the item with *item_id*, or None if it is not in the log."""
    return next((item for item in log if item.id == item_id), None)


def filter_history(
    log: list[HistoryItem],
    term: str = "",
    problem_type: str = "all",
) -> list[HistoryItem]:
    """Filter the log by free-text search and problem type.

    Args:
        log: The history, newest first.
        term: Case-insensitive substring matched against the explanation and
            each step. Surrounding whitespace is ignored and a
            blank term matches everything.
        problem_type: Exact ``problem_type`` to keep, or ``"all"``.

    Returns:
        Matching items in their original order.
    """
    term = term.strip().lower()

    def _matches_search(item: HistoryItem) -> bool:
        return term in item.solution.explanation.lower() or any(
            term in step.lower() for step in item.solution.steps
        )

    return [
        item
        for item in log
        if _matches_search(item)
        and (problem_type == "all" or item.problem_type == problem_type)
    ]


def problem_types(log: list[HistoryItem]) -> list[str]:
    """Distinct, non-empty problem types in first-seen order."""
    return list(dict.fromkeys(item.problem_type for item in log if item.problem_type))
