"""Tests for mathbud/topics.py — keyword-based topic detection."""

from __future__ import annotations

import pytest

from mathbud.models import Solution
from mathbud.topics import GENERAL_MATH, detect_topics


def make_solution(explanation: str = "", steps: list[str] | None = None) -> Solution:
    return Solution(explanation=explanation, steps=steps or [])


class TestDetectTopics:
    def test_regression_fixture(self):
        solution = make_solution(
            "This is a quadratic equation. We solve by factoring.",
            ["Step one: x^2 - 5x + 6 = 0", "Step two: factor into (x-2)(x-3)=0"],
        )
        assert detect_topics(solution) == ["Quadratic Equations", "Factoring"]

    def test_no_keywords_is_general_math(self):
        solution = make_solution("Add the two numbers together.", ["2 + 3 = 5"])
        assert detect_topics(solution) == [GENERAL_MATH]

    def test_empty_solution_is_general_math(self):
        assert detect_topics(make_solution()) == ["General Math"]

    @pytest.mark.parametrize("text", ["quadratic", "QUADRATIC", "A Quadratic one"])
    def test_quadratic_any_case(self, text):
        assert detect_topics(make_solution(text)).count("Quadratic Equations") == 1

    def test_keyword_in_explanation_and_steps_counted_once(self):
        solution = make_solution("A quadratic.", ["Solve the quadratic", "quadratic again"])
        assert detect_topics(solution) == ["Quadratic Equations"]

    def test_priority_order_is_fixed(self):
        solution = make_solution("Statistics meets geometry and algebra.")
        assert detect_topics(solution) == ["Algebra", "Geometry", "Statistics"]

    def test_deterministic(self):
        solution = make_solution("Linear algebra with fractions.", ["Use a fraction"])
        assert detect_topics(solution) == detect_topics(solution)


# ── Explanation vs. step keywords ──────────────────────────────────────────────


class TestAsymmetricKeywords:
    def test_factor_in_steps_matches(self):
        assert detect_topics(make_solution("Simplify.", ["factor it"])) == ["Factoring"]

    def test_factor_in_explanation_needs_factoring(self):
        assert detect_topics(make_solution("We factor it.", ["Done"])) == [GENERAL_MATH]

    def test_trig_in_steps_matches(self):
        solution = make_solution("Solve.", ["Use trig identities"])
        assert detect_topics(solution) == ["Trigonometry"]

    def test_trig_in_explanation_does_not_match(self):
        assert detect_topics(make_solution("Use trig here.")) == [GENERAL_MATH]

    def test_calculus_via_derivative_step(self):
        solution = make_solution("Find the slope.", ["Take the derivative"])
        assert detect_topics(solution) == ["Calculus"]

    def test_calculus_via_integral_step(self):
        solution = make_solution("Find the area.", ["Evaluate the integral"])
        assert detect_topics(solution) == ["Calculus"]

    def test_percent_in_steps_matches(self):
        solution = make_solution("Convert.", ["Write it as a percent"])
        assert detect_topics(solution) == ["Percentages"]

    def test_percent_in_explanation_needs_percentage(self):
        assert detect_topics(make_solution("Ten percent off.")) == [GENERAL_MATH]

    def test_substring_not_whole_word(self):
        solution = make_solution("Count arrangements.", ["Compute 5 factorial"])
        assert detect_topics(solution) == ["Factoring"]
