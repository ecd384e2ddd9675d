"""
Pydantic models for the screen builder API.

Request/response shapes only. The screen wire format lives in engine.kernel.schema.
"""

from backend.models.generate import ChatMessage, GenerateRequest, GenerateResponse, RenderRequest

__all__ = [
    "ChatMessage",
    "GenerateRequest",
    "GenerateResponse",
    "RenderRequest",
]
