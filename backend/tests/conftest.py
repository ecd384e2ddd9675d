"""
Pytest configuration and fixtures for screen builder tests.
"""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from backend.config import settings
from backend.main import app


@pytest.fixture
def use_mock_agent(monkeypatch):
    """Route generation through MockLLM; call with the golden scenario name."""

    def _use(scenario: str) -> None:
        monkeypatch.setattr(settings, "AGENT_BACKEND", "mock")
        monkeypatch.setattr(settings, "MOCK_SCENARIO", scenario)
        monkeypatch.setattr(settings, "MOCK_PROFILE", "instant")

    return _use


@pytest_asyncio.fixture
async def async_client():
    """Async HTTP client against the ASGI app."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()

