"""
Tests for the streaming orchestrator.

Golden scenarios replay through MockLLM, so these run without network.
"""

from __future__ import annotations

from typing import Any

import pytest

from backend.services.anthropic_client import AgentUpstreamError
from backend.services.session import FALLBACK_SUMMARY, ScreenSession
from backend.services.streaming_orchestrator import StreamingOrchestrator
from backend.utils.screen_hash import hash_screen
from engine.kernel.mock_llm import MockLLM
from engine.kernel.reducer import apply_patch
from engine.kernel.schema import ScreenValidationError


async def run_turn(scenario: str, prompt: str = "build it", screen=None, max_steps: int = 25):
    session = ScreenSession(prompt, screen=screen, max_steps=max_steps)
    client = MockLLM(scenario)
    orchestrator = StreamingOrchestrator(session, client)
    events = [item async for item in orchestrator.run()]
    return session, client, orchestrator, events


def names(events: list[dict[str, Any]]) -> list[str]:
    return [e["event"] for e in events]


def patches(events: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [e["data"]["patch"] for e in events if e["event"] == "patch"]


class RecordingClient:
    """Records stream() kwargs and plays canned rounds."""

    def __init__(self, rounds: list[list[dict[str, Any]]]):
        self.rounds = rounds
        self.requests: list[dict[str, Any]] = []

    async def stream(self, **kwargs: Any):
        self.requests.append(kwargs)
        events = self.rounds.pop(0) if self.rounds else []
        for event in events:
            yield event


class MeteredClient(RecordingClient):
    """RecordingClient that reports fixed token usage after every response."""

    async def get_usage_stats(self) -> dict[str, int]:
        return {
            "input_tokens": 100,
            "output_tokens": 40,
            "cache_creation_input_tokens": 0,
            "cache_read_input_tokens": 90,
        }


class FailingClient:
    """Raises the same error AnthropicClient raises when the API call fails."""

    async def stream(self, **kwargs: Any):
        raise AgentUpstreamError("APIConnectionError: Connection error.")
        yield  # pragma: no cover


# ---------------------------------------------------------------------------
# Event sequence
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_landing_page_event_order():
    """ready, then (tool_call, patch) pairs in acceptance order, then final."""
    session, client, orchestrator, events = await run_turn("landing_page")

    assert events[0] == {"event": "ready", "data": {"ok": True}}
    assert names(events[1:-1]) == ["tool_call", "patch"] * 6
    assert events[-1]["event"] == "final"
    assert [e["data"]["name"] for e in events if e["event"] == "tool_call"] == [
        "update_screen_meta",
        "upsert_component",
        "upsert_component",
        "insert_into_layout",
        "upsert_component",
        "move_in_layout",
    ]
    assert orchestrator.rounds == 2
    # finalize ends the turn; the trailing turn_end is never read
    assert client.calls == 2


@pytest.mark.asyncio
async def test_landing_page_final_screen():
    session, _, _, events = await run_turn("landing_page")
    final = events[-1]["data"]

    assert final["summary"] == "Created a landing page with hero, features and footer."
    assert final["screen"]["title"] == "Acme Landing"
    assert final["screen"]["layout"] == ["hero", "features", "footer"]
    assert final["screen_hash"] == hash_screen(final["screen"])
    assert session.steps == 6


@pytest.mark.asyncio
async def test_tool_call_args_omit_html():
    _, _, _, events = await run_turn("landing_page")
    upserts = [e["data"] for e in events if e["event"] == "tool_call" and e["data"]["name"] == "upsert_component"]
    assert upserts[0]["args"] == {"id": "hero", "name": "Hero"}


# ---------------------------------------------------------------------------
# Replay contract
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_replaying_patches_reaches_final_screen():
    """Folding every emitted patch over the submitted screen gives the final snapshot."""
    start = {
        "title": "Old",
        "components": {"nav": {"name": "Nav", "html": "<nav>n</nav>"}},
        "layout": ["nav"],
    }
    _, _, _, events = await run_turn("landing_page", screen=start)

    replayed = start
    for patch in patches(events):
        replayed = apply_patch(replayed, patch)

    final = events[-1]["data"]
    assert replayed == final["screen"]
    assert hash_screen(replayed) == final["screen_hash"]
    assert final["screen"]["layout"] == ["nav", "hero", "features", "footer"]


# ---------------------------------------------------------------------------
# Fallback endings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_no_finalize_uses_trailing_text():
    session, _, orchestrator, events = await run_turn("forgets_finalize")

    assert names(events) == ["ready", "tool_call", "patch", "final"]
    assert events[-1]["data"]["summary"] == "Added a pricing section below the hero."
    assert events[-1]["data"]["screen"]["layout"] == ["pricing"]
    assert orchestrator.rounds == 2


@pytest.mark.asyncio
async def test_step_budget_ends_turn_with_fallback():
    """25 structural operations without finalize: final event, not an error."""
    session, _, _, events = await run_turn("runaway", max_steps=25)

    assert len(patches(events)) == 25
    assert "error" not in names(events)
    final = events[-1]
    assert final["event"] == "final"
    assert final["data"]["summary"] == "Adding a long list of content blocks."
    assert final["data"]["screen"]["layout"] == [f"block-{n}" for n in range(1, 26)]
    assert session.steps == 25


@pytest.mark.asyncio
async def test_generic_fallback_without_text():
    client = RecordingClient([[{"type": "tool_use", "id": "t1", "name": "delete_component", "input": {"id": "x"}}]])
    session = ScreenSession("clear", max_steps=1)
    events = [item async for item in StreamingOrchestrator(session, client).run()]
    assert events[-1]["data"]["summary"] == FALLBACK_SUMMARY


# ---------------------------------------------------------------------------
# Rejected tool calls
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_invalid_tool_call_is_skipped_not_fatal():
    session, _, _, events = await run_turn("invalid_tool_call")

    calls = [e["data"]["name"] for e in events if e["event"] == "tool_call"]
    # "Bad ID!" upsert is rejected; inserting an unknown id is a valid no-op patch
    assert calls == ["insert_into_layout", "upsert_component"]
    assert events[-1]["data"]["summary"] == "Added a sale banner."
    assert events[-1]["data"]["screen"]["layout"] == ["banner"]
    assert session.steps == 3


@pytest.mark.asyncio
async def test_rejections_are_reported_back_to_the_agent():
    client = RecordingClient(
        [
            [
                {"type": "tool_use", "id": "t1", "name": "upsert_component", "input": {"id": "BAD"}},
                {"type": "tool_use", "id": "t2", "name": "finalize", "input": {"summary": ""}},
            ],
            [{"type": "tool_use", "id": "t3", "name": "finalize", "input": {"summary": "Nothing to do."}}],
        ]
    )
    session = ScreenSession("noop")
    events = [item async for item in StreamingOrchestrator(session, client).run()]

    assert names(events) == ["ready", "final"]
    assert events[-1]["data"]["summary"] == "Nothing to do."

    second_request = client.requests[1]["messages"]
    assert second_request[-2]["role"] == "assistant"
    results = second_request[-1]["content"]
    assert [r["tool_use_id"] for r in results] == ["t1", "t2"]
    assert all(r.get("is_error") for r in results)


@pytest.mark.asyncio
async def test_request_carries_tools_and_system():
    client = RecordingClient([[{"type": "tool_use", "id": "t1", "name": "finalize", "input": {"summary": "ok"}}]])
    session = ScreenSession("hi")
    [item async for item in StreamingOrchestrator(session, client, model="m", max_tokens=10).run()]

    request = client.requests[0]
    assert request["model"] == "m"
    assert request["max_tokens"] == 10
    assert {t["name"] for t in request["tools"]} >= {"upsert_component", "finalize"}
    assert request["system"][0]["type"] == "text"


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upstream_failure_propagates_after_ready():
    session = ScreenSession("build")
    seen = []
    with pytest.raises(AgentUpstreamError):
        async for item in StreamingOrchestrator(session, FailingClient()).run():
            seen.append(item["event"])
    assert seen == ["ready"]


@pytest.mark.asyncio
async def test_final_validation_failure_propagates(monkeypatch):
    def broken_snapshot(self):
        raise ScreenValidationError(["layout[0]: dangling id 'ghost'"])

    monkeypatch.setattr(ScreenSession, "final_snapshot", broken_snapshot)
    session = ScreenSession("build")
    seen = []
    with pytest.raises(ScreenValidationError):
        async for item in StreamingOrchestrator(session, MockLLM("landing_page")).run():
            seen.append(item["event"])
    assert "final" not in seen
    assert seen[-1] == "patch"


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_usage_summed_across_rounds():
    client = MeteredClient(
        [
            [{"type": "tool_use", "id": "t1", "name": "delete_component", "input": {"id": "x"}}],
            [{"type": "tool_use", "id": "t2", "name": "finalize", "input": {"summary": "Done."}}],
        ]
    )
    orchestrator = StreamingOrchestrator(ScreenSession("clear"), client)
    [item async for item in orchestrator.run()]

    assert orchestrator.rounds == 2
    assert orchestrator.usage == {"input_tokens": 200, "output_tokens": 80, "cache_read": 180, "cache_creation": 0}


@pytest.mark.asyncio
async def test_usage_stays_zero_without_usage_stats():
    _, _, orchestrator, _ = await run_turn("landing_page")
    assert orchestrator.usage["input_tokens"] == 0
