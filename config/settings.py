"""Application settings — all configuration loaded from environment variables.

Usage:
    from config.settings import Settings
    settings = Settings()
    settings.validate()   # raises ValueError if ANTHROPIC_API_KEY is missing
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class Settings:
    """Centralised application configuration.

    All values are read from environment variables at instantiation time
    so that tests can override them by patching ``os.environ``.
    """

    # ── API Keys ────────────────────────────────────────────────────────────
    anthropic_api_key: str = field(
        default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", "")
    )

    # ── Flask ───────────────────────────────────────────────────────────────
    debug: bool = field(
        default_factory=lambda: os.environ.get("FLASK_DEBUG", "0") == "1"
    )
    port: int = field(
        default_factory=lambda: int(os.environ.get("PORT", "5000"))
    )

    # ── Uploads ─────────────────────────────────────────────────────────────
    max_image_bytes: int = field(
        default_factory=lambda: int(
            os.environ.get("MAX_IMAGE_BYTES", str(10 * 1024 * 1024))
        )
    )

    # ── AI Models ───────────────────────────────────────────────────────────
    #: Vision-capable model used to read and solve the uploaded problem.
    solve_model: str = field(
        default_factory=lambda: os.environ.get("SOLVE_MODEL", "claude-sonnet-4-5")
    )
    #: Model used for free-text tutoring chat.
    chat_model: str = field(
        default_factory=lambda: os.environ.get("CHAT_MODEL", "claude-haiku-4-5")
    )
    solve_max_tokens: int = field(
        default_factory=lambda: int(os.environ.get("SOLVE_MAX_TOKENS", "2000"))
    )
    chat_max_tokens: int = field(
        default_factory=lambda: int(os.environ.get("CHAT_MAX_TOKENS", "1000"))
    )
    chat_temperature: float = field(
        default_factory=lambda: float(os.environ.get("CHAT_TEMPERATURE", "0.7"))
    )

    def validate(self) -> None:
        """Raise ``ValueError`` if any required setting is missing."""
        if not self.anthropic_api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Copy .env.example to .env and add your key."
            )
