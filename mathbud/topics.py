"""Topic detection for solved problems.

Maps a ``Solution`` to an ordered list of coarse topic labels using plain
substring heuristics over the lower-cased explanation and steps:

- Rules are tested in a fixed priority order (Quadratic Equations first,
  Statistics last) and each matching rule contributes its label once.
- A rule may use different keywords for the explanation and for the steps
  (e.g. the explanation must say "trigonometry" but a step only "trig").
- When nothing matches the result is exactly ``["General Math"]``.

Matching is substring based, not whole-word: "factorial" counts as "factor".
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from mathbud.models import Solution

logger = logging.getLogger(__name__)

#: Label assigned when no keyword rule matches.
GENERAL_MATH = "General Math"


class TopicRule(NamedTuple):
    """A topic label and the keywords that trigger it."""

    label: str
    explanation_keywords: tuple[str, ...]
    step_keywords: tuple[str, ...]


# ── Keyword rules (priority order) ─────────────────────────────────────────────

TOPIC_RULES: tuple[TopicRule, ...] = (
    TopicRule("Quadratic Equations", ("quadratic",), ("quadratic",)),
    TopicRule("Linear Equations", ("linear",), ("linear",)),
    TopicRule("Factoring", ("factoring",), ("factor",)),
    TopicRule("Polynomials", ("polynomial",), ("polynomial",)),
    TopicRule("Algebra", ("algebra",), ("algebra",)),
    TopicRule("Geometry", ("geometry",), ("geometry",)),
    TopicRule("Trigonometry", ("trigonometry",), ("trig",)),
    TopicRule("Calculus", ("calculus",), ("derivative", "integral")),
    TopicRule("Fractions", ("fraction",), ("fraction",)),
    TopicRule("Percentages", ("percentage",), ("percent",)),
    TopicRule("Probability", ("probability",), ("probability",)),
    TopicRule("Statistics", ("statistics",), ("statistics",)),
)


def _matches(rule: TopicRule, explanation: str, steps: str) -> bool:
    return any(kw in explanation for kw in rule.explanation_keywords) or any(
        kw in steps for kw in rule.step_keywords
    )


# ── Public interface ───────────────────────────────────────────────────────────


def detect_topics(solution: Solution) -> list[str]:
    """Detect the topics a solved problem belongs to.

    Args:
        solution: The solution returned by the solve relay.

    Returns:
        A non-empty list of distinct topic labels in rule priority order.

    Examples:
        >>> detect_topics(Solution(explanation="A quadratic.", steps=[]))
        ['Quadratic Equations']
        >>> detect_topics(Solution(explanation="Add 2 and 3.", steps=["5"]))
        ['General Math']
    """
    explanation = solution.explanation.lower()
    steps = " ".join(solution.steps).lower()

    topics = [
        rule.label for rule in TOPIC_RULES if _matches(rule, explanation, steps)
    ]
    if not topics:
        topics = [GENERAL_MATH]

    logger.debug("Detected topics %s", topics)
    return topics
