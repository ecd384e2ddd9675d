"""
Mock LLM for deterministic testing and UX timing simulation.

Replays golden agent transcripts with configurable delays. A golden file is
JSONL, one agent stream event per line:

  {"type": "text", "text": "..."}
  {"type": "tool_use", "name": "upsert_component", "input": {...}}
  {"type": "turn_end"}

Each call to stream() plays lines up to the next turn_end (one model
response), so a multi-round agent loop walks through the file. Once the
file is exhausted, stream() yields nothing.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

GOLDEN_DIR = Path(__file__).parent / "tests" / "fixtures" / "golden"

DELAY_PROFILES: dict[str, dict[str, int]] = {
    "instant": {"think_ms": 0, "per_line_ms": 0},
    "realistic": {"think_ms": 800, "per_line_ms": 150},
    "slow": {"think_ms": 3000, "per_line_ms": 500},
}


class MockLLM:
    """Plays a golden scenario through the same stream() interface as AnthropicClient."""

    def __init__(self, scenario: str, profile: str = "instant", golden_dir: Path = GOLDEN_DIR):
        delays = DELAY_PROFILES.get(profile)
        if delays is None:
            raise ValueError(f"Unknown delay profile: {profile!r}. Valid profiles: {list(DELAY_PROFILES)}")

        path = golden_dir / f"{scenario}.jsonl"
        if not path.exists():
            raise FileNotFoundError(f"Golden file not found: {path}")

        self.scenario = scenario
        self.delays = delays
        self._events = [json.loads(line) for line in path.read_text().splitlines() if line.strip()]
        self._cursor = 0
        self._tool_seq = 0
        self.calls = 0

    @property
    def exhausted(self) -> bool:
        return self._cursor >= len(self._events)

    async def stream(self, **_: Any) -> AsyncIterator[dict[str, Any]]:
        """
        Yield the events of the next model response.

        Accepts and ignores the AnthropicClient.stream() keyword arguments.
        """
        self.calls += 1

        if self.delays["think_ms"] > 0 and not self.exhausted:
            await asyncio.sleep(self.delays["think_ms"] / 1000)

        while not self.exhausted:
            event = self._events[self._cursor]
            self._cursor += 1

            if event.get("type") == "turn_end":
                return

            if event.get("type") == "tool_use":
                self._tool_seq += 1
                event = {"id": f"toolu_mock_{self._tool_seq}", **event}

            yield event

            if self.delays["per_line_ms"] > 0:
                await asyncio.sleep(self.delays["per_line_ms"] / 1000)

    async def complete(self, **kwargs: Any) -> str:
        """Concatenated text of the next model response (JSON generation mode)."""
        parts = []
        async for event in self.stream(**kwargs):
            if event.get("type") == "text":
                parts.append(event.get("text", ""))
        return "".join(parts)


def list_scenarios(golden_dir: Path = GOLDEN_DIR) -> list[str]:
    """Return names of all available golden scenarios."""
    return sorted(p.stem for p in golden_dir.glob("*.jsonl"))
