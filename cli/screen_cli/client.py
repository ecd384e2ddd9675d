"""HTTP client for the screen builder API, plus local patch replay."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx

from engine.kernel.reducer import apply_patch, empty_screen


class SSEDecoder:
    """Turns `event:` / `data:` lines into (event, data) pairs."""

    def __init__(self) -> None:
        self.event_type: str | None = None

    def feed_line(self, line: str) -> tuple[str, Any] | None:
        """Feed one line; returns a complete record when its data line arrives."""
        line = line.strip()
        if not line:
            self.event_type = None
            return None

        if line.startswith("event:"):
            self.event_type = line[6:].strip()
        elif line.startswith("data:") and self.event_type:
            return (self.event_type, json.loads(line[5:].strip()))
        return None


class ApiClient:
    """HTTP client for the screen builder API."""

    def __init__(self, api_url: str, timeout: float = 120.0, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url.rstrip("/")
        self.async_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def stream_generate(
        self,
        prompt: str,
        messages: list[dict[str, Any]] | None = None,
        screen: dict[str, Any] | None = None,
    ) -> AsyncIterator[tuple[str, Any]]:
        """
        Start a generation turn and stream its events.

        Yields tuples of (event_type, data).
        """
        body: dict[str, Any] = {"prompt": prompt, "messages": messages or []}
        if screen is not None:
            body["screen"] = screen

        decoder = SSEDecoder()
        async with self.async_client.stream(
            "POST",
            f"{self.api_url}/api/generate/stream",
            json=body,
            headers={"Content-Type": "application/json", "Accept": "text/event-stream"},
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                record = decoder.feed_line(line)
                if record is not None:
                    yield record

    async def close(self) -> None:
        """Close client."""
        await self.async_client.aclose()


class TurnReplay:
    """
    Local mirror of one turn.

    Applies every `patch` event through the kernel reducer, then reconciles
    with the `final` snapshot, which always wins.
    """

    def __init__(self, screen: dict[str, Any] | None = None):
        self.screen = screen if screen is not None else empty_screen()
        self.patches_applied = 0
        self.summary: str | None = None
        self.error: str | None = None
        self.drifted = False

    @property
    def done(self) -> bool:
        return self.summary is not None or self.error is not None

    def handle(self, event_type: str, data: Any) -> None:
        if event_type == "patch":
            self.screen = apply_patch(self.screen, data["patch"])
            self.patches_applied += 1
        elif event_type == "final":
            self.drifted = self.screen != data["screen"]
            self.screen = data["screen"]
            self.summary = data["summary"]
        elif event_type == "error":
            self.error = data.get("message", "unknown error")
