"""
Screen generation routes.

  POST /api/generate/stream  — agent tool loop, server-sent events
  POST /api/generate         — single-shot JSON generation (regenerate | patch)
  POST /api/render           — sandbox HTML document for a screen or one component
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, StreamingResponse
from pydantic import TypeAdapter, ValidationError

from backend.config import settings
from backend.models.generate import GenerateRequest, GenerateResponse, RenderRequest
from backend.services.anthropic_client import AgentUpstreamError, AnthropicClient
from backend.services.json_extract import extract_json, looks_truncated
from backend.services.prompt_builder import JSON_PROMPT, build_messages, build_system_blocks
from backend.services.session import ScreenSession
from backend.services.streaming_orchestrator import StreamingOrchestrator
from backend.utils.sse import format_sse
from engine.kernel.mock_llm import MockLLM
from engine.kernel.reducer import empty_screen, normalize_screen, resolve_agent_response
from engine.kernel.renderer import render_component_html, render_screen_html
from engine.kernel.schema import AgentResponse, ScreenValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])

_agent_response_adapter: TypeAdapter[Any] = TypeAdapter(AgentResponse)


def get_agent_client() -> AnthropicClient | MockLLM:
    """
    Agent client for this request.

    Raises 500 when the Anthropic backend is selected but no key is configured.
    """
    if settings.uses_mock_agent:
        return MockLLM(settings.MOCK_SCENARIO, profile=settings.MOCK_PROFILE)
    if not settings.ANTHROPIC_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Missing ANTHROPIC_API_KEY in environment",
        )
    return AnthropicClient(settings.ANTHROPIC_API_KEY)


def _request_screen(req: GenerateRequest) -> dict[str, Any] | None:
    return req.screen.to_wire() if req.screen is not None else None


def _request_messages(req: GenerateRequest) -> list[dict[str, Any]]:
    return [m.model_dump() for m in req.messages]


async def _event_stream(request: Request, orchestrator: StreamingOrchestrator) -> AsyncIterator[str]:
    """Frame orchestrator events as SSE; any failure becomes the terminal error event."""
    try:
        async for item in orchestrator.run():
            if await request.is_disconnected():
                logger.info("generate: client disconnected, stopping stream")
                return
            yield format_sse(item["event"], item["data"])
    except AgentUpstreamError as e:
        logger.warning("generate: upstream failure: %s", e)
        yield format_sse("error", {"message": f"Upstream generation failed: {e}"})
    except ScreenValidationError as e:
        logger.error("generate: final screen failed validation: %s", e)
        yield format_sse("error", {"message": f"Final screen failed validation: {e}"})
    except Exception as e:
        logger.exception("generate: turn failed")
        yield format_sse("error", {"message": f"Generation failed: {e}"})


@router.post("/generate/stream")
async def generate_stream(
    req: GenerateRequest,
    request: Request,
    client: AnthropicClient | MockLLM = Depends(get_agent_client),
) -> StreamingResponse:
    """Run one agent turn and stream ready → (tool_call, patch)* → final | error."""
    session = ScreenSession(
        prompt=req.prompt,
        screen=_request_screen(req),
        messages=_request_messages(req),
        max_steps=settings.AGENT_MAX_STEPS,
    )
    orchestrator = StreamingOrchestrator(
        session,
        client,
        model=settings.SCREEN_MODEL,
        max_tokens=settings.ANTHROPIC_MAX_TOKENS,
        temperature=settings.ANTHROPIC_TEMPERATURE,
    )
    return StreamingResponse(
        _event_stream(request, orchestrator),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/generate", status_code=200)
async def generate(
    req: GenerateRequest,
    client: AnthropicClient | MockLLM = Depends(get_agent_client),
) -> GenerateResponse:
    """
    Single-shot generation.

    The model answers with one JSON object: either a whole new screen
    (regenerate) or a patch against the submitted one. The response carries
    the model's answer plus the resolved screen.
    """
    screen = _request_screen(req)
    prev = normalize_screen(screen) if screen else empty_screen()

    try:
        text = await client.complete(
            messages=build_messages(req.prompt, _request_messages(req), screen),
            system=build_system_blocks(JSON_PROMPT),
            model=settings.SCREEN_MODEL,
            max_tokens=settings.ANTHROPIC_MAX_TOKENS,
            temperature=settings.ANTHROPIC_TEMPERATURE,
        )
    except AgentUpstreamError as e:
        logger.warning("generate: upstream failure: %s", e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Upstream generation failed", "model": settings.SCREEN_MODEL, "details": str(e)},
        ) from e

    try:
        raw = json.loads(extract_json(text))
    except json.JSONDecodeError as e:
        hint = (
            "The model output looks truncated (likely max tokens too low). "
            "Increase ANTHROPIC_MAX_TOKENS or ask for a simpler screen."
            if looks_truncated(text)
            else "The model returned malformed JSON. Try again or simplify the request."
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Model did not return valid JSON", "raw": text, "hint": hint},
        ) from e

    try:
        parsed = _agent_response_adapter.validate_python(raw)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "Model JSON failed schema validation",
                "details": e.errors(include_url=False, include_context=False, include_input=False),
                "raw": raw,
            },
        ) from e

    response = parsed.to_wire()
    next_screen = resolve_agent_response(prev, response)
    logger.info(
        "generate: %s applied components=%d layout=%d",
        response["action"],
        len(next_screen["components"]),
        len(next_screen["layout"]),
    )
    return GenerateResponse(
        action=response["action"],
        summary=response["summary"],
        screen=next_screen,
        patch=response.get("patch"),
    )


@router.post("/render", response_class=HTMLResponse)
async def render(req: RenderRequest) -> HTMLResponse:
    """Sandbox document for the whole screen, or for one component when component_id is set."""
    screen = normalize_screen(req.screen.to_wire()) if req.screen is not None else None
    if req.component_id is not None:
        return HTMLResponse(render_component_html(screen, req.component_id))
    return HTMLResponse(render_screen_html(screen))
