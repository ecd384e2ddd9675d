"""
Anthropic streaming client.

Connects to Anthropic Messages API, streams response chunks.
Supports tool_use streaming (agent loop) and a single text completion
(JSON generation mode).
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import anthropic

logger = logging.getLogger(__name__)


class AgentUpstreamError(Exception):
    """The model call failed (transport, auth, rate limit, malformed stream)."""


class AnthropicClient:
    """Streams responses from Anthropic Messages API."""

    def __init__(self, api_key: str):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key
        """
        self.client = anthropic.AsyncAnthropic(api_key=api_key)
        self._last_usage: dict[str, int] | None = None

    @staticmethod
    def _build_kwargs(
        messages: list[dict[str, Any]],
        system: str | list[dict[str, Any]],
        model: str,
        max_tokens: int,
        tools: list[dict[str, Any]] | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": messages,
        }
        if tools is not None:
            kwargs["tools"] = tools
        if temperature is not None:
            kwargs["temperature"] = temperature
        return kwargs

    def _record_usage(self, message: Any) -> None:
        if message is None or not hasattr(message, "usage"):
            return
        self._last_usage = {
            "input_tokens": message.usage.input_tokens,
            "output_tokens": message.usage.output_tokens,
            "cache_creation_input_tokens": getattr(message.usage, "cache_creation_input_tokens", 0) or 0,
            "cache_read_input_tokens": getattr(message.usage, "cache_read_input_tokens", 0) or 0,
        }

    async def stream(
        self,
        messages: list[dict[str, Any]],
        system: str | list[dict[str, Any]],
        model: str = "claude-haiku-4-5",
        max_tokens: int = 6000,
        tools: list[dict[str, Any]] | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """
        Stream one model response.

        Yields event dicts:
            - {"type": "text", "text": "..."} for text deltas
            - {"type": "tool_use", "id": "...", "name": "...", "input": {...}} once a tool block completes

        Raises:
            AgentUpstreamError: if the API call or the stream fails
        """
        self._last_usage = None
        kwargs = self._build_kwargs(messages, system, model, max_tokens, tools, temperature)

        try:
            async with self.client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "text":
                        yield {"type": "text", "text": event.text}
                    elif event.type == "content_block_stop":
                        block = event.content_block
                        if getattr(block, "type", None) == "tool_use":
                            logger.debug("anthropic_client: tool_use name=%s id=%s", block.name, block.id)
                            yield {
                                "type": "tool_use",
                                "id": block.id,
                                "name": block.name,
                                "input": block.input,
                            }

                final_message = await stream.get_final_message()
                self._record_usage(final_message)
        except anthropic.APIError as e:
            raise AgentUpstreamError(f"{type(e).__name__}: {e}") from e

    async def complete(
        self,
        messages: list[dict[str, Any]],
        system: str | list[dict[str, Any]],
        model: str = "claude-haiku-4-5",
        max_tokens: int = 6000,
        temperature: float | None = None,
    ) -> str:
        """
        Run one non-streaming call and return the concatenated text blocks.

        Raises:
            AgentUpstreamError: if the API call fails
        """
        self._last_usage = None
        kwargs = self._build_kwargs(messages, system, model, max_tokens, None, temperature)
        try:
            message = await self.client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise AgentUpstreamError(f"{type(e).__name__}: {e}") from e

        self._record_usage(message)
        return "".join(block.text for block in message.content if getattr(block, "type", None) == "text")

    async def get_usage_stats(self) -> dict[str, int] | None:
        """
        Get usage statistics from the most recent API call.

        Returns:
            Dictionary with token counts or None if not available
        """
        return self._last_usage
