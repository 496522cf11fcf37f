"""Per-topic note aggregation.

Responsibilities:
- Extract candidate concepts, examples and formulas from a ``Solution``
- Merge candidates into each detected topic's ``TopicNote`` (dedup + caps)
- Rename a topic without leaving an alias behind
- Search and summarise the notes collection

Every operation takes the current ``dict[str, TopicNote]`` and returns a new
one; the caller's mapping is never mutated in place.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Iterable, Optional

from mathbud.errors import InvalidTopicError, TopicConflictError
from mathbud.models import Solution, TopicNote

logger = logging.getLogger(__name__)

Notes = dict[str, TopicNote]

# ── Caps ───────────────────────────────────────────────────────────────────────

MAX_CONCEPTS = 10
MAX_EXAMPLES = 5
MAX_FORMULAS = 8

#: A concept fragment must be longer than this many characters.
MIN_CONCEPT_LENGTH = 10
#: A step must be longer than this many characters to count as an example.
MIN_EXAMPLE_LENGTH = 20

_FORMULA_SYMBOLS: tuple[str, ...] = ("=", "^", "√", "±")
_LETTER_OPERATOR_LETTER = re.compile(r"[a-zA-Z]\s*[+\-*/]\s*[a-zA-Z]")


# ── Candidate extraction ───────────────────────────────────────────────────────


def extract_concepts(explanation: str) -> list[str]:
    """Split *explanation* on periods and keep the longer fragments."""
    fragments = (part.strip() for part in explanation.split("."))
    return [f for f in fragments if len(f) > MIN_CONCEPT_LENGTH]


def extract_examples(steps: Iterable[str]) -> list[str]:
    """Return the steps long enough to serve as worked examples."""
    return [step for step in steps if len(step) > MIN_EXAMPLE_LENGTH]


def is_formula(step: str) -> bool:
    """Return True if *step* looks like it contains mathematical notation.

    Examples:
        >>> is_formula("x^2 - 4")
        True
        >>> is_formula("a + b")
        True
        >>> is_formula("Add the numbers")
        False
    """
    if any(symbol in step for symbol in _FORMULA_SYMBOLS):
        return True
    return _LETTER_OPERATOR_LETTER.search(step) is not None


def extract_formulas(steps: Iterable[str]) -> list[str]:
    """Return the steps flagged by :func:`is_formula`."""
    return [step for step in steps if is_formula(step)]


def merge_capped(existing: list[str], candidates: list[str], cap: int) -> list[str]:
    """Concatenate, drop duplicates keeping the first occurrence, truncate.

    Existing entries always come before new candidates, so once a list is
    full new candidates are dropped.
    """
    return list(dict.fromkeys([*existing, *candidates]))[:cap]


# ── Update ─────────────────────────────────────────────────────────────────────


def _empty_note(topic: str, now: datetime) -> TopicNote:
    return TopicNote(topic=topic, last_updated=now, problem_count=0)


def update_notes(
    notes: Notes,
    solution: Solution,
    topics: list[str],
    now: Optional[datetime] = None,
) -> Notes:
    """Fold a newly solved problem into the notes of each of its topics.

    Args:
        notes: Current topic → note mapping (left untouched).
        solution: The solved problem.
        topics: Topic labels detected for *solution*.
        now: Timestamp to record as ``last_updated``; defaults to UTC now.

    Returns:
        A new mapping with every topic in *topics* created or updated.
    """
    now = now or datetime.now(timezone.utc)

    concepts = extract_concepts(solution.explanation)
    examples = extract_examples(solution.steps)
    formulas = extract_formulas(solution.steps)

    updated: Notes = dict(notes)
    for topic in topics:
        existing = updated.get(topic) or _empty_note(topic, now)
        updated[topic] = TopicNote(
            topic=topic,
            concepts=merge_capped(existing.concepts, concepts, MAX_CONCEPTS),
            examples=merge_capped(existing.examples, examples, MAX_EXAMPLES),
            key_formulas=merge_capped(existing.key_formulas, formulas, MAX_FORMULAS),
            last_updated=now,
            problem_count=existing.problem_count + 1,
        )

    logger.info("Updated notes for topics=%s", topics)
    return updated


# ── Rename ─────────────────────────────────────────────────────────────────────


def rename_topic(notes: Notes, old_name: str, new_name: str) -> Notes:
    """Move the note stored under *old_name* to *new_name*.

    Only the ``topic`` field changes; counts, lists and ``last_updated`` are
    carried over as-is. Renaming to a different casing of the same name is
    allowed.

    Args:
        notes: Current topic → note mapping (left untouched).
        old_name: Existing topic key. If absent the mapping is returned as-is.
        new_name: Desired topic label; surrounding whitespace is stripped.

    Returns:
        A new mapping without *old_name* and with *new_name*.

    Raises:
        InvalidTopicError: If *new_name* is blank.
        TopicConflictError: If *new_name* matches another topic ignoring case.
    """
    if old_name not in notes:
        return dict(notes)

    new_name = new_name.strip()
    if not new_name:
        raise InvalidTopicError("Topic name must not be empty.")

    lowered = new_name.lower()
    for key in notes:
        if key != old_name and key.lower() == lowered:
            raise TopicConflictError(old_name, new_name, key)

    renamed = notes[old_name].model_copy(update={"topic": new_name})
    updated = {k: v for k, v in notes.items() if k != old_name}
    updated[new_name] = renamed

    logger.info("Renamed topic %r to %r", old_name, new_name)
    return updated


# ── Accessors ──────────────────────────────────────────────────────────────────


def get_note(notes: Notes, topic: str) -> Optional[TopicNote]:
    """Look up a note by its exact topic string."""
    return notes.get(topic)


def list_notes(notes: Notes) -> list[TopicNote]:
    return list(notes.values())


def search_notes(notes: Notes, term: str) -> list[TopicNote]:
    """Return notes whose topic or any concept contains *term* (any case)."""
    term = term.strip().lower()
    if not term:
        return list_notes(notes)
    return [
        note
        for note in notes.values()
        if term in note.topic.lower()
        or any(term in concept.lower() for concept in note.concepts)
    ]


def notes_stats(notes: Notes) -> dict[str, int]:
    """Totals shown alongside the notes list."""
    return {
        "topics": len(notes),
        "problems_solved": sum(n.problem_count for n in notes.values()),
        "concepts_learned": sum(len(n.concepts) for n in notes.values()),
    }
