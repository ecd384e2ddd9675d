"""
Prompt builder for the screen agent.

System prompt comes from backend/prompts/*.md (cached, marked for Anthropic
prompt caching). The user turn carries the current screen, the conversation
history and the new request in one message, so histories re-submitted by the
client never break Anthropic's role alternation.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

AGENT_PROMPT = "screen_agent"
JSON_PROMPT = "screen_agent_json"

# Cache loaded prompts in memory (they don't change at runtime)
_cache: dict[str, str] = {}


def _load(name: str) -> str:
    """Load and cache a prompt file."""
    if name not in _cache:
        path = PROMPTS_DIR / f"{name}.md"
        _cache[name] = path.read_text()
    return _cache[name]


def build_system_blocks(name: str = AGENT_PROMPT) -> list[dict[str, Any]]:
    """
    Build system prompt as content blocks for Anthropic API.

    Args:
        name: Prompt file (without .md) — AGENT_PROMPT for the tool loop,
            JSON_PROMPT for single-shot JSON generation

    Returns:
        List with one cached text block.
    """
    return [
        {
            "type": "text",
            "text": _load(name),
            "cache_control": {"type": "ephemeral"},
        }
    ]


def build_user_context(
    prompt: str,
    messages: list[dict[str, Any]],
    screen: dict[str, Any] | None,
) -> str:
    """Current screen, conversation so far, then the new request."""
    return "\n".join(
        [
            "Current screen state (if any):",
            json.dumps(screen, indent=2) if screen else "null",
            "",
            "Conversation history:",
            json.dumps(messages, indent=2),
            "",
            "New user request:",
            prompt,
        ]
    )


def build_messages(
    prompt: str,
    messages: list[dict[str, Any]],
    screen: dict[str, Any] | None,
) -> list[dict[str, Any]]:
    """
    Build messages array for API call.

    Args:
        prompt: New user request
        messages: Prior conversation [{role, content}]
        screen: Current screen, or None for a fresh one

    Returns:
        Messages array formatted for Anthropic API
    """
    return [{"role": "user", "content": build_user_context(prompt, messages, screen)}]
