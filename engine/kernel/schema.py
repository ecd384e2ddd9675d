"""
Screen Kernel — Schema

Pydantic models for the wire format shared by the agent, the server and
every client that replays patches:

  Screen    {title?, globalCss?, components: {id: {name, html}}, layout: [id]}
  Patch     {upsert_components, delete_components, layout_patch, title?, globalCss?}
  LayoutOp  insert | remove | move | set   (discriminated on "op")

The reducer works on plain dicts in this same shape. Use `to_wire()` to get
the dict form of any model (aliases applied, unset optionals omitted).
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, StringConstraints, ValidationError, model_validator

# ---------------------------------------------------------------------------
# Limits
# ---------------------------------------------------------------------------

COMPONENT_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")
COMPONENT_ID_MAX = 64
NAME_MAX = 80
HTML_MAX = 50_000
TITLE_MAX = 120
GLOBAL_CSS_MAX = 20_000
LAYOUT_MAX = 200
PATCH_UPSERTS_MAX = 50
PATCH_DELETES_MAX = 50
PATCH_LAYOUT_OPS_MAX = 200
SUMMARY_MAX = 500

ComponentId = Annotated[
    str,
    StringConstraints(min_length=1, max_length=COMPONENT_ID_MAX, pattern=COMPONENT_ID_PATTERN.pattern),
]


def is_component_id(value: Any) -> bool:
    """True when value is a well-formed component id."""
    return (
        isinstance(value, str)
        and 0 < len(value) <= COMPONENT_ID_MAX
        and bool(COMPONENT_ID_PATTERN.match(value))
    )


class ScreenValidationError(Exception):
    """A screen failed the full schema + invariant check."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems) if problems else "invalid screen")


class WireModel(BaseModel):
    model_config = {"populate_by_name": True}

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Components and screen
# ---------------------------------------------------------------------------


class StoredComponent(WireModel):
    """A component as stored in Screen.components (the id is the key)."""

    name: str = Field(min_length=1, max_length=NAME_MAX)
    html: str = Field(min_length=1, max_length=HTML_MAX)


class ScreenComponent(StoredComponent):
    """A component carrying its own id, as sent in upserts."""

    id: ComponentId


class Screen(WireModel):
    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX)
    global_css: str | None = Field(default=None, max_length=GLOBAL_CSS_MAX, alias="globalCss")
    components: dict[str, StoredComponent] = Field(default_factory=dict)
    layout: list[ComponentId] = Field(default_factory=list, max_length=LAYOUT_MAX)

    @model_validator(mode="after")
    def _component_keys_are_ids(self) -> Screen:
        bad = [key for key in self.components if not is_component_id(key)]
        if bad:
            raise ValueError(f"Invalid component id key(s): {', '.join(repr(k) for k in bad)}")
        return self


# ---------------------------------------------------------------------------
# Layout operations
# ---------------------------------------------------------------------------


class InsertOp(WireModel):
    op: Literal["insert"] = "insert"
    component_id: ComponentId
    index: int = Field(ge=0)


class RemoveOp(WireModel):
    op: Literal["remove"] = "remove"
    component_id: ComponentId


class MoveOp(WireModel):
    op: Literal["move"] = "move"
    component_id: ComponentId
    to_index: int = Field(ge=0)


class SetOp(WireModel):
    op: Literal["set"] = "set"
    layout: list[ComponentId] = Field(max_length=LAYOUT_MAX)


LayoutOp = Annotated[InsertOp | RemoveOp | MoveOp | SetOp, Field(discriminator="op")]


class Patch(WireModel):
    upsert_components: list[ScreenComponent] = Field(default_factory=list, max_length=PATCH_UPSERTS_MAX)
    delete_components: list[ComponentId] = Field(default_factory=list, max_length=PATCH_DELETES_MAX)
    layout_patch: list[LayoutOp] = Field(default_factory=list, max_length=PATCH_LAYOUT_OPS_MAX)
    title: str | None = Field(default=None, min_length=1, max_length=TITLE_MAX)
    global_css: str | None = Field(default=None, max_length=GLOBAL_CSS_MAX, alias="globalCss")


# ---------------------------------------------------------------------------
# JSON-mode agent response
# ---------------------------------------------------------------------------


class RegenerateResponse(WireModel):
    action: Literal["regenerate"] = "regenerate"
    summary: str = Field(min_length=1, max_length=SUMMARY_MAX)
    screen: Screen


class PatchResponse(WireModel):
    action: Literal["patch"] = "patch"
    summary: str = Field(min_length=1, max_length=SUMMARY_MAX)
    patch: Patch


AgentResponse = Annotated[RegenerateResponse | PatchResponse, Field(discriminator="action")]


# ---------------------------------------------------------------------------
# Invariant checks
# ---------------------------------------------------------------------------


def check_invariants(screen: dict[str, Any]) -> list[str]:
    """
    Return the screen invariants that `screen` violates (empty list = valid).

      1. every layout id is a component key
      2. no duplicate layout ids
      3. layout length <= LAYOUT_MAX
      4. every component key is a well-formed id
    """
    problems: list[str] = []
    components = screen.get("components") or {}
    layout = screen.get("layout") or []

    for key in components:
        if not is_component_id(key):
            problems.append(f"components: invalid component id key {key!r}")

    seen: set[str] = set()
    for position, component_id in enumerate(layout):
        if component_id not in components:
            problems.append(f"layout[{position}]: dangling id {component_id!r}")
        if component_id in seen:
            problems.append(f"layout[{position}]: duplicate id {component_id!r}")
        seen.add(component_id)

    if len(layout) > LAYOUT_MAX:
        problems.append(f"layout: {len(layout)} entries exceeds {LAYOUT_MAX}")

    return problems


def _format_validation_error(exc: ValidationError) -> list[str]:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "screen"
        problems.append(f"{location}: {err.get('msg', 'invalid')}")
    return problems


def validate_screen(screen: dict[str, Any]) -> dict[str, Any]:
    """
    Full check of a screen: schema limits plus the reducer invariants.

    Returns the screen in wire form. Raises ScreenValidationError listing
    every problem found; nothing is repaired here.
    """
    try:
        model = Screen.model_validate(screen)
    except ValidationError as exc:
        raise ScreenValidationError(_format_validation_error(exc)) from exc

    wire = model.to_wire()
    problems = check_invariants(wire)
    if problems:
        raise ScreenValidationError(problems)
    return wire
