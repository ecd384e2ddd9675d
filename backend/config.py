"""
Screen builder configuration — all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # AI provider
    ANTHROPIC_API_KEY: str = os.environ.get("ANTHROPIC_API_KEY", "")
    SCREEN_MODEL: str = os.environ.get("SCREEN_MODEL", "claude-haiku-4-5")
    ANTHROPIC_MAX_TOKENS: int = int(os.environ.get("ANTHROPIC_MAX_TOKENS", "6000"))
    ANTHROPIC_TEMPERATURE: float = float(os.environ.get("ANTHROPIC_TEMPERATURE", "0.2"))

    # Agent loop
    AGENT_MAX_STEPS: int = int(os.environ.get("AGENT_MAX_STEPS", "25"))  # structural operations per turn

    # "anthropic" for the real model, "mock" to replay a golden scenario
    AGENT_BACKEND: str = os.environ.get("AGENT_BACKEND", "anthropic")
    MOCK_SCENARIO: str = os.environ.get("MOCK_SCENARIO", "landing_page")
    MOCK_PROFILE: str = os.environ.get("MOCK_PROFILE", "instant")

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    @property
    def uses_mock_agent(self) -> bool:
        return self.AGENT_BACKEND == "mock"


# Singleton instance
settings = Settings()
