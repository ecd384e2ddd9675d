"""
Screen session — the state of one generation turn.

Owns the running screen, the conversation and the final summary. Every
structural operation the agent issues is normalized into a single-op Patch
and folded through the kernel reducer; the screen value is replaced, never
mutated in place, so any observer applying the same patches reaches the
same screen.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from engine.kernel.reducer import apply_patch, empty_screen, normalize_screen
from engine.kernel.schema import SUMMARY_MAX, Patch, validate_screen

logger = logging.getLogger(__name__)

FALLBACK_SUMMARY = "Updated the screen."

# Tool inputs that are not worth echoing in tool_call events
_BULKY_ARGS = {"html", "globalCss"}


class ToolInputError(Exception):
    """A tool call could not be turned into a valid patch. Nothing was applied."""

    def __init__(self, tool_name: str, problems: list[str]):
        self.tool_name = tool_name
        self.problems = problems
        super().__init__(f"{tool_name}: " + "; ".join(problems))


class SessionStateError(Exception):
    """Operation not allowed in the session's current state."""


@dataclass
class AppliedOperation:
    """One accepted structural operation and the patch it became."""

    tool_name: str
    args: dict[str, Any]
    patch: dict[str, Any]


# ---------------------------------------------------------------------------
# Tool call → Patch
# ---------------------------------------------------------------------------


def _pick(tool_input: dict[str, Any], *keys: str) -> dict[str, Any]:
    return {k: tool_input[k] for k in keys if k in tool_input}


def _upsert_component(tool_input: dict[str, Any]) -> dict[str, Any]:
    return {"upsert_components": [_pick(tool_input, "id", "name", "html")]}


def _delete_component(tool_input: dict[str, Any]) -> dict[str, Any]:
    return {"delete_components": [tool_input.get("id")]}


def _insert_into_layout(tool_input: dict[str, Any]) -> dict[str, Any]:
    return {"layout_patch": [{"op": "insert", **_pick(tool_input, "component_id", "index")}]}


def _move_in_layout(tool_input: dict[str, Any]) -> dict[str, Any]:
    return {"layout_patch": [{"op": "move", **_pick(tool_input, "component_id", "to_index")}]}


def _remove_from_layout(tool_input: dict[str, Any]) -> dict[str, Any]:
    return {"layout_patch": [{"op": "remove", **_pick(tool_input, "component_id")}]}


def _set_layout(tool_input: dict[str, Any]) -> dict[str, Any]:
    return {"layout_patch": [{"op": "set", **_pick(tool_input, "layout")}]}


def _update_screen_meta(tool_input: dict[str, Any]) -> dict[str, Any]:
    meta = _pick(tool_input, "title", "globalCss")
    if not meta:
        raise ToolInputError("update_screen_meta", ["title or globalCss is required"])
    return meta


_TOOL_TO_PATCH = {
    "upsert_component": _upsert_component,
    "delete_component": _delete_component,
    "insert_into_layout": _insert_into_layout,
    "move_in_layout": _move_in_layout,
    "remove_from_layout": _remove_from_layout,
    "set_layout": _set_layout,
    "update_screen_meta": _update_screen_meta,
}


def _coerce_input(tool_name: str, tool_input: Any) -> dict[str, Any]:
    # Some models send the input object as a JSON string
    if isinstance(tool_input, str):
        try:
            tool_input = json.loads(tool_input)
        except json.JSONDecodeError:
            raise ToolInputError(tool_name, ["input is not a JSON object"]) from None
    if not isinstance(tool_input, dict):
        raise ToolInputError(tool_name, ["input is not a JSON object"])
    return tool_input


def tool_call_to_patch(tool_name: str, tool_input: Any) -> dict[str, Any]:
    """
    Normalize one structural tool call into a single-op Patch (wire dict).

    Raises:
        ToolInputError: unknown tool or input that fails the Patch schema
    """
    builder = _TOOL_TO_PATCH.get(tool_name)
    if builder is None:
        raise ToolInputError(tool_name, [f"unknown tool {tool_name!r}"])

    raw = builder(_coerce_input(tool_name, tool_input))
    try:
        return Patch.model_validate(raw).to_wire()
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err.get('loc', ())) or 'input'}: {err.get('msg', 'invalid')}"
            for err in e.errors()
        ]
        raise ToolInputError(tool_name, problems) from e


def tool_call_args(tool_input: Any) -> dict[str, Any]:
    """Identifying arguments of a tool call, without markup or CSS bodies."""
    if not isinstance(tool_input, dict):
        return {}
    return {k: v for k, v in tool_input.items() if k not in _BULKY_ARGS}


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class ScreenSession:
    """Running state of one turn: screen, conversation, step count, final summary."""

    def __init__(
        self,
        prompt: str,
        screen: dict[str, Any] | None = None,
        messages: list[dict[str, Any]] | None = None,
        max_steps: int = 25,
    ):
        """
        Initialize a session.

        Args:
            prompt: The user's request for this turn
            screen: Screen the client re-submitted (normalized on entry), or None
            messages: Prior conversation [{role, content}]
            max_steps: Structural operations allowed before the turn is closed
        """
        self.prompt = prompt
        self.initial_screen = normalize_screen(screen) if screen else empty_screen()
        self.screen = self.initial_screen
        self.history = list(messages or [])
        self.max_steps = max_steps
        self.steps = 0
        self.applied: list[AppliedOperation] = []
        self.final_summary: str | None = None

    @property
    def finalized(self) -> bool:
        return self.final_summary is not None

    @property
    def budget_exhausted(self) -> bool:
        return self.steps >= self.max_steps

    def apply_tool_call(self, tool_name: str, tool_input: Any) -> AppliedOperation:
        """
        Count, normalize and fold one structural operation.

        Raises:
            SessionStateError: the session is already finalized or out of steps
            ToolInputError: the call was rejected; the screen is unchanged
        """
        if self.finalized:
            raise SessionStateError("session is finalized")
        if self.budget_exhausted:
            raise SessionStateError(f"step budget of {self.max_steps} exhausted")

        self.steps += 1
        patch = tool_call_to_patch(tool_name, tool_input)
        self.screen = apply_patch(self.screen, patch)

        applied = AppliedOperation(tool_name=tool_name, args=tool_call_args(tool_input), patch=patch)
        self.applied.append(applied)
        logger.debug("session: applied %s step=%d/%d", tool_name, self.steps, self.max_steps)
        return applied

    def finalize(self, summary: Any) -> str:
        """
        Set the final summary (once). Over-long summaries are cut to SUMMARY_MAX.

        Raises:
            SessionStateError: already finalized
            ToolInputError: summary missing or blank
        """
        if self.finalized:
            raise SessionStateError("session is already finalized")
        if not isinstance(summary, str) or not summary.strip():
            raise ToolInputError("finalize", ["summary: must be a non-empty string"])

        self.final_summary = summary.strip()[:SUMMARY_MAX]
        return self.final_summary

    def finalize_with_fallback(self, trailing_text: str = "") -> str:
        """Close a turn the agent did not finalize: use its last text, else a generic line."""
        text = (trailing_text or "").strip()
        return self.finalize(text[:SUMMARY_MAX] if text else FALLBACK_SUMMARY)

    def final_snapshot(self) -> dict[str, Any]:
        """
        Re-validate the running screen against the full schema and invariants.

        Raises:
            ScreenValidationError: never coerced; a failure here is a reducer or input bug
        """
        return validate_screen(self.screen)
