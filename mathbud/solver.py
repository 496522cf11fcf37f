"""
Vision solve relay for Math Bud.

Sends a photo of a math problem to Claude and turns the reply into a
``Solution``.

Flow
────
1. validate_image(data, mimetype, max_bytes)
     → rejects empty, non-image, or oversized uploads
2. MathSolver.solve(image_bytes, mimetype)
     → one non-streaming Claude call with the base64 image + tutor prompt
3. parse_solution(text)
     → strips markdown fences, decodes JSON, falls back to a plain-text
       solution, and flattens every step into a display string
"""

from __future__ import annotations

import base64
import json
import logging
import re
from typing import TYPE_CHECKING, Any

import anthropic

from mathbud.errors import InvalidImageError, SolveError
from mathbud.models import Solution

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

SOLVE_PROMPT = """You are an expert math tutor for middle and high school students. \
Analyze this math problem image and provide a comprehensive, educational solution.

Please respond with a JSON object containing:
1. "explanation": A clear explanation of what the problem is asking and the approach to solve it
2. "steps": An array of detailed step-by-step solutions that teach the student how to solve it

Guidelines:
- Make explanations clear and educational, suitable for students
- Break down complex problems into manageable steps
- Include mathematical reasoning and concepts
- Use appropriate mathematical notation
- Focus on teaching understanding, not just the answer
- For each step, explain WHY we perform that calculation or operation
- If the image is unclear or not a math problem, explain what you see and ask for clarification

IMPORTANT: For each step, include the reasoning behind WHY we do that particular \
calculation. For example:
- "We factor because..."
- "We use the zero product property because..."
- "We add 8 to both sides because..."

Format your response as valid JSON only."""

FALLBACK_EXPLANATION = (
    "I can see a math problem in the image. Let me help you solve it step by step."
)
DEFAULT_EXPLANATION = "Here's how to solve this math problem:"

_JSON_FENCE = re.compile(r"```json\s*")
_OPEN_FENCE = re.compile(r"```\s*")
_CLOSE_FENCE = re.compile(r"```\s*$")
_LEADING_NUMBER = re.compile(r"^\d+\.\s*")
_BOLD = re.compile(r"\*\*(.*?)\*\*")


# ── Upload validation ──────────────────────────────────────────────────────


def validate_image(data: bytes, mimetype: str, max_bytes: int) -> None:
    """Raise ``InvalidImageError`` unless *data* is a non-empty image upload.

    Args:
        data: Raw uploaded bytes.
        mimetype: Content type reported by the client.
        max_bytes: Upper size limit in bytes.
    """
    if not data:
        raise InvalidImageError("No image file provided")
    if not (mimetype or "").startswith("image/"):
        raise InvalidImageError("Please upload a valid image file.")
    if len(data) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise InvalidImageError(
            f"File too large. Please upload an image smaller than {limit_mb}MB."
        )


# ── Response normalisation ─────────────────────────────────────────────────


def strip_code_fences(content: str) -> str:
    """Remove a leading ```json (or bare ```) fence and a trailing fence."""
    if "```json" in content:
        content = _JSON_FENCE.sub("", content, count=1)
    elif "```" in content:
        content = _OPEN_FENCE.sub("", content, count=1)
    else:
        return content
    return _CLOSE_FENCE.sub("", content, count=1)


def normalize_step(step: Any) -> str:
    """Flatten one step from the model into a display string.

    Plain strings lose a leading ``"1. "`` and ``**bold**`` markers. Objects
    with a ``step`` key are rendered as the step text followed by optional
    calculation, equation and reasoning lines.
    """
    if isinstance(step, str):
        return _BOLD.sub(r"\1", _LEADING_NUMBER.sub("", step)).strip()

    if isinstance(step, dict) and step.get("step"):
        text = str(step["step"])
        if step.get("calculation"):
            text += f"\n📊 {step['calculation']}"
        if step.get("equation"):
            text += f"\n📊 {step['equation']}"
        reasoning = step.get("reasoning") or step.get("reason") or step.get("explanation")
        if reasoning:
            text += f"\n💡 {reasoning}"
        return text

    return str(step)


def parse_solution(content: str) -> Solution:
    """Turn the model's raw text reply into a ``Solution``.

    Never raises for text input: anything that is not a JSON object becomes
    a single-step solution holding the raw reply.
    """
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError:
        logger.info("Solve reply is not JSON; wrapping raw text")
        data = None

    if not isinstance(data, dict):
        data = {"explanation": FALLBACK_EXPLANATION, "steps": [content]}

    steps = data.get("steps")
    if not isinstance(steps, list):
        steps = [content]

    explanation = data.get("explanation") or DEFAULT_EXPLANATION

    return Solution(
        explanation=str(explanation),
        steps=[normalize_step(step) for step in steps],
    )


def response_text(response: Any) -> str:
    """Concatenate the text blocks of a Messages API response."""
    return "".join(
        getattr(block, "text", "") or ""
        for block in getattr(response, "content", []) or []
        if getattr(block, "type", None) == "text"
    )


# ── Solver ─────────────────────────────────────────────────────────────────


class MathSolver:
    """Solves photographed math problems with a vision-capable Claude model.

    The Anthropic client is lazy-initialised so the class can be built in
    tests without a live API key.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._client: object = None  # Lazy-initialised anthropic.Anthropic

    @property
    def client(self) -> object:
        """Lazy-initialise and return the Anthropic SDK client."""
        if self._client is None:
            self._client = anthropic.Anthropic(
                api_key=self.settings.anthropic_api_key,
                max_retries=3,
            )
        return self._client

    def solve(self, image: bytes, mimetype: str) -> Solution:
        """Validate *image*, send it to Claude and return the parsed solution.

        Args:
            image: Raw image bytes from the upload.
            mimetype: The upload's content type (``image/png``, …).

        Returns:
            A normalised ``Solution``.

        Raises:
            InvalidImageError: If the upload is empty, not an image or too big.
            SolveError: If the provider call fails.
        """
        validate_image(image, mimetype, self.settings.max_image_bytes)
        logger.info("Solving image: %d bytes, type=%s", len(image), mimetype)

        try:
            response = self.client.messages.create(
                model=self.settings.solve_model,
                max_tokens=self.settings.solve_max_tokens,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": mimetype,
                                    "data": base64.b64encode(image).decode("ascii"),
                                },
                            },
                            {"type": "text", "text": SOLVE_PROMPT},
                        ],
                    }
                ],
            )
        except anthropic.APIError as exc:
            logger.exception("Solve request failed")
            raise SolveError(
                "Failed to solve the math problem. "
                "Please try again or check your image quality."
            ) from exc

        content = response_text(response)
        logger.debug("Solve reply: %s", content)
        return parse_solution(content)
