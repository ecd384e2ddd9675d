"""Request/response models for screen generation."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from engine.kernel.schema import ComponentId, Screen


class ChatMessage(BaseModel):
    """One prior turn of the conversation, as re-submitted by the client."""

    model_config = {"extra": "forbid"}

    role: Literal["user", "assistant"]
    content: str = Field(min_length=1, max_length=10000)


class GenerateRequest(BaseModel):
    """What the client sends to start a generation turn."""

    model_config = {"extra": "forbid"}

    prompt: str = Field(min_length=1, max_length=10000)
    messages: list[ChatMessage] = Field(default_factory=list, max_length=50)
    screen: Screen | None = None


class GenerateResponse(BaseModel):
    """What the JSON-mode endpoint returns: the agent's answer plus the resolved screen."""

    action: Literal["regenerate", "patch"]
    summary: str
    screen: dict[str, Any]
    patch: dict[str, Any] | None = None


class RenderRequest(BaseModel):
    """What the client sends to get a sandbox document for a screen or one component."""

    model_config = {"extra": "forbid"}

    screen: Screen | None = None
    component_id: ComponentId | None = None
