"""
Streaming orchestrator for one screen generation turn.

Runs the agent tool loop and turns each accepted structural operation into
events, in acceptance order:

  ready      turn accepted
  tool_call  the accepted operation and its identifying arguments, sent
             right before its patch (informational)
  patch      the exact single-op Patch that was folded into the screen
  final      summary + re-validated screen (authoritative) + its hash

Each tool call → patch → apply → emit cycle finishes before the next tool
call is looked at. The loop ends on `finalize`, when the agent stops calling
tools, or when the step budget runs out; the latter two close the turn with
a fallback summary. Upstream and final-validation failures propagate to the
caller, which reports them as the terminal `error` event.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from typing import Any, Protocol

from backend.services.prompt_builder import build_messages, build_system_blocks
from backend.services.session import ScreenSession, SessionStateError, ToolInputError
from backend.services.tool_defs import FINALIZE_TOOL, TOOLS
from backend.utils.screen_hash import hash_screen

logger = logging.getLogger(__name__)


class AgentClient(Protocol):
    def stream(self, **kwargs: Any) -> AsyncIterator[dict[str, Any]]: ...


def _tool_result(tool_use_id: str, content: str, is_error: bool = False) -> dict[str, Any]:
    result: dict[str, Any] = {"type": "tool_result", "tool_use_id": tool_use_id, "content": content}
    if is_error:
        result["is_error"] = True
    return result


class StreamingOrchestrator:
    """Drives one agent turn end to end over a ScreenSession."""

    def __init__(
        self,
        session: ScreenSession,
        client: AgentClient,
        model: str = "claude-haiku-4-5",
        max_tokens: int = 6000,
        temperature: float | None = 0.2,
    ):
        """
        Initialize streaming orchestrator.

        Args:
            session: Session holding the starting screen, prompt and history
            client: AnthropicClient or any object with the same stream() contract
            model: Model identifier
            max_tokens: Max output tokens per model response
            temperature: Sampling temperature
        """
        self.session = session
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.rounds = 0
        self.usage = {"input_tokens": 0, "output_tokens": 0, "cache_read": 0, "cache_creation": 0}

    async def _add_usage(self) -> None:
        """Add the last model response's token counts, when the client reports them."""
        get_usage_stats = getattr(self.client, "get_usage_stats", None)
        if get_usage_stats is None:
            return
        usage = await get_usage_stats()
        if usage is None:
            return
        self.usage["input_tokens"] += usage.get("input_tokens", 0)
        self.usage["output_tokens"] += usage.get("output_tokens", 0)
        self.usage["cache_read"] += usage.get("cache_read_input_tokens", 0)
        self.usage["cache_creation"] += usage.get("cache_creation_input_tokens", 0)

    async def run(self) -> AsyncIterator[dict[str, Any]]:
        """
        Run the turn and yield {"event": name, "data": payload} dicts.

        Raises:
            AgentUpstreamError: model call or stream failed
            ScreenValidationError: the final screen did not validate
        """
        session = self.session
        logger.info(
            "streaming_orchestrator: turn start components=%d layout=%d max_steps=%d",
            len(session.screen["components"]),
            len(session.screen["layout"]),
            session.max_steps,
        )

        yield {"event": "ready", "data": {"ok": True}}

        system = build_system_blocks()
        messages = build_messages(session.prompt, session.history, session.initial_screen)
        trailing_text = ""

        while not session.finalized and not session.budget_exhausted:
            self.rounds += 1
            assistant_content: list[dict[str, Any]] = []
            tool_results: list[dict[str, Any]] = []
            text_buffer: list[str] = []
            saw_tool_call = False

            def flush_text() -> None:
                text = "".join(text_buffer)
                text_buffer.clear()
                if text.strip():
                    assistant_content.append({"type": "text", "text": text})

            stream = self.client.stream(
                messages=messages,
                system=system,
                model=self.model,
                max_tokens=self.max_tokens,
                tools=TOOLS,
                temperature=self.temperature,
            )
            async with aclosing(stream):
                async for stream_event in stream:
                    event_type = stream_event.get("type")

                    if event_type == "text":
                        text_buffer.append(stream_event.get("text", ""))
                        continue
                    if event_type != "tool_use":
                        continue

                    flush_text()
                    saw_tool_call = True
                    tool_use_id = stream_event.get("id", "")
                    tool_name = stream_event.get("name", "")
                    tool_input = stream_event.get("input", {})
                    assistant_content.append(
                        {"type": "tool_use", "id": tool_use_id, "name": tool_name, "input": tool_input}
                    )

                    if tool_name == FINALIZE_TOOL:
                        summary = tool_input.get("summary") if isinstance(tool_input, dict) else None
                        try:
                            session.finalize(summary)
                        except ToolInputError as e:
                            logger.warning("streaming_orchestrator: rejected finalize: %s", e)
                            tool_results.append(_tool_result(tool_use_id, str(e), is_error=True))
                            continue
                        break

                    try:
                        applied = session.apply_tool_call(tool_name, tool_input)
                    except ToolInputError as e:
                        logger.warning("streaming_orchestrator: rejected tool call: %s", e)
                        tool_results.append(_tool_result(tool_use_id, str(e), is_error=True))
                    except SessionStateError:
                        break
                    else:
                        yield {"event": "tool_call", "data": {"name": applied.tool_name, "args": applied.args}}
                        yield {"event": "patch", "data": {"patch": applied.patch}}
                        tool_results.append(_tool_result(tool_use_id, "applied"))

                    if session.budget_exhausted:
                        break

            await self._add_usage()

            flush_text()
            round_texts = [b["text"].strip() for b in assistant_content if b["type"] == "text"]
            if round_texts:
                trailing_text = round_texts[-1]

            if session.finalized or not saw_tool_call:
                break

            messages = [
                *messages,
                {"role": "assistant", "content": assistant_content},
                {"role": "user", "content": tool_results},
            ]

        if not session.finalized:
            if session.budget_exhausted:
                logger.info(
                    "streaming_orchestrator: step budget of %d reached without finalize", session.max_steps
                )
            else:
                logger.info("streaming_orchestrator: agent stopped without finalize")
            session.finalize_with_fallback(trailing_text)

        screen = session.final_snapshot()
        logger.info(
            "streaming_orchestrator: turn complete steps=%d applied=%d rounds=%d "
            "input_tokens=%d output_tokens=%d cache_read=%d",
            session.steps,
            len(session.applied),
            self.rounds,
            self.usage["input_tokens"],
            self.usage["output_tokens"],
            self.usage["cache_read"],
        )
        yield {
            "event": "final",
            "data": {"summary": session.final_summary, "screen": screen, "screen_hash": hash_screen(screen)},
        }
