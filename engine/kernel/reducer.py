"""
Screen Kernel — Reducer

Pure function: (screen, patch) → screen

Every session, every client and every test folds patches through this one
function; replaying the same patches in the same order yields the same
screen. Processing order is fixed:

  1. copy components + layout, overwrite title/globalCss if present in patch
  2. upserts (remember which ids are new)
  3. deletes (component and all of its layout occurrences)
  4. layout ops, in order, each against the already-mutated layout
  5. append new components that are still not placed
  6. normalize: dedupe (first wins), drop dangling ids, truncate

Bad references never raise. Inserting or moving an unknown component is a
no-op, a `set` drops ids it cannot resolve, and malformed entries are
skipped. The previous screen is never modified.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Any

from engine.kernel.schema import LAYOUT_MAX, is_component_id

# ---------------------------------------------------------------------------
# Screen structure
# ---------------------------------------------------------------------------


def empty_screen() -> dict[str, Any]:
    """
    The screen before anything has been generated.

    Screen = {
        "title":      str            (optional),
        "globalCss":  str            (optional),
        "components": {id: {"name": str, "html": str}},
        "layout":     [id, ...],
    }
    """
    return {"components": {}, "layout": []}


# ---------------------------------------------------------------------------
# Layout helpers
# ---------------------------------------------------------------------------


def _uniq_keep_order(ids: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for component_id in ids:
        if component_id in seen:
            continue
        seen.add(component_id)
        out.append(component_id)
    return out


def _remove_all(layout: list[str], component_id: Any) -> list[str]:
    return [i for i in layout if i != component_id]


def _clamp_index(index: Any, length: int) -> int:
    """
    Clamp an insertion index into [0, length].

    Anything that is not a usable non-negative number (None, NaN, inf,
    negatives, strings) lands at the end. 9999 is the conventional "append".
    """
    if isinstance(index, bool) or not isinstance(index, (int, float)):
        return length
    if isinstance(index, float):
        if math.isnan(index) or math.isinf(index):
            return length
        index = int(index)
    if index < 0:
        return length
    return min(index, length)


def _normalize(screen: dict[str, Any]) -> dict[str, Any]:
    components = screen["components"]
    ids = (i for i in screen["layout"] if isinstance(i, str))
    layout = [i for i in _uniq_keep_order(ids) if i in components]
    screen["layout"] = layout[:LAYOUT_MAX]
    return screen


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def _apply_upserts(screen: dict[str, Any], upserts: Iterable[Any], prev_ids: set[str]) -> list[str]:
    """Set/overwrite components. Returns ids that were not in the previous screen, in upsert order."""
    newly_added: list[str] = []
    for comp in upserts:
        if not isinstance(comp, dict):
            continue
        component_id = comp.get("id")
        name = comp.get("name")
        html = comp.get("html")
        if not is_component_id(component_id) or not isinstance(name, str) or not isinstance(html, str):
            continue
        screen["components"][component_id] = {"name": name, "html": html}
        if component_id not in prev_ids and component_id not in newly_added:
            newly_added.append(component_id)
    return newly_added


def _apply_deletes(screen: dict[str, Any], deletes: Iterable[Any]) -> None:
    for component_id in deletes:
        if not isinstance(component_id, str):
            continue
        screen["components"].pop(component_id, None)
        screen["layout"] = _remove_all(screen["layout"], component_id)


def _op_set(screen: dict[str, Any], op: dict[str, Any]) -> None:
    layout = op.get("layout")
    if not isinstance(layout, list):
        return
    components = screen["components"]
    screen["layout"] = [i for i in layout if isinstance(i, str) and i in components]


def _op_remove(screen: dict[str, Any], op: dict[str, Any]) -> None:
    screen["layout"] = _remove_all(screen["layout"], op.get("component_id"))


def _op_insert(screen: dict[str, Any], op: dict[str, Any]) -> None:
    component_id = op.get("component_id")
    if not isinstance(component_id, str) or component_id not in screen["components"]:
        return
    layout = _remove_all(screen["layout"], component_id)
    layout.insert(_clamp_index(op.get("index"), len(layout)), component_id)
    screen["layout"] = layout


def _op_move(screen: dict[str, Any], op: dict[str, Any]) -> None:
    component_id = op.get("component_id")
    if not isinstance(component_id, str) or component_id not in screen["components"]:
        return
    # move never inserts
    if component_id not in screen["layout"]:
        return
    layout = _remove_all(screen["layout"], component_id)
    layout.insert(_clamp_index(op.get("to_index"), len(layout)), component_id)
    screen["layout"] = layout


_LAYOUT_OPS = {
    "set": _op_set,
    "remove": _op_remove,
    "insert": _op_insert,
    "move": _op_move,
}


def _apply_layout_ops(screen: dict[str, Any], ops: Iterable[Any]) -> None:
    for op in ops:
        if not isinstance(op, dict):
            continue
        handler = _LAYOUT_OPS.get(op.get("op"))
        if handler is None:
            continue
        handler(screen, op)


def _append_unplaced(screen: dict[str, Any], newly_added: list[str]) -> None:
    for component_id in newly_added:
        if component_id not in screen["components"]:
            continue
        if component_id in screen["layout"]:
            continue
        screen["layout"].append(component_id)


def _list_field(patch: dict[str, Any], key: str) -> list[Any]:
    value = patch.get(key)
    return value if isinstance(value, list) else []


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def apply_patch(prev: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """
    Apply one patch to a screen and return the new screen.

    Pure and total: `prev` is not modified and no input makes this raise.
    The result always satisfies the screen invariants.
    """
    prev_components = prev.get("components") or {}
    prev_ids = set(prev_components)

    screen: dict[str, Any] = {
        "components": {
            key: dict(value)
            for key, value in prev_components.items()
            if is_component_id(key) and isinstance(value, dict)
        },
        "layout": list(prev.get("layout") or []),
    }

    title = patch.get("title")
    if title is None:
        title = prev.get("title")
    if title is not None:
        screen["title"] = title

    global_css = patch.get("globalCss")
    if global_css is None:
        global_css = prev.get("globalCss")
    if global_css is not None:
        screen["globalCss"] = global_css

    newly_added = _apply_upserts(screen, _list_field(patch, "upsert_components"), prev_ids)
    _apply_deletes(screen, _list_field(patch, "delete_components"))
    _apply_layout_ops(screen, _list_field(patch, "layout_patch"))

    # The agent often creates a component and forgets to place it.
    _append_unplaced(screen, newly_added)

    return _normalize(screen)


def normalize_screen(screen: dict[str, Any]) -> dict[str, Any]:
    """Repair layout references of a screen without changing anything else."""
    return apply_patch(screen, {})


def apply_all(screen: dict[str, Any], patches: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Fold a sequence of patches over a screen, in order."""
    for patch in patches:
        screen = apply_patch(screen, patch)
    return screen


def replay(patches: Iterable[dict[str, Any]]) -> dict[str, Any]:
    """Rebuild a screen from scratch by folding all patches."""
    return apply_all(empty_screen(), patches)


def resolve_agent_response(prev: dict[str, Any], response: dict[str, Any]) -> dict[str, Any]:
    """
    Turn a whole-turn agent response into the next screen.

      {"action": "regenerate", "screen": {...}}  → that screen, normalized
      {"action": "patch", "patch": {...}}        → apply_patch(prev, patch)

    Anything else leaves the screen as it was.
    """
    action = response.get("action")
    if action == "regenerate" and isinstance(response.get("screen"), dict):
        return normalize_screen(response["screen"])
    if action == "patch" and isinstance(response.get("patch"), dict):
        return apply_patch(prev, response["patch"])
    return normalize_screen(prev)
