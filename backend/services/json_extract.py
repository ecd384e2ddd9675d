"""
JSON extraction for single-shot model output.

Models wrap JSON in ```json fences, forget the closing fence when output is
truncated, or add prose around the object. Extraction peels those layers off
and leaves parsing and schema validation to the caller.
"""

from __future__ import annotations

import re

_JSON_FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)


def extract_json(text: str) -> str:
    """
    Return the most likely JSON object substring of a model reply.

    Order: full fenced block → opening fence without closing fence →
    outermost {...} → the trimmed text as-is.
    """
    trimmed = text.strip()

    fence = _JSON_FENCE_RE.match(trimmed)
    if fence and fence.group(1):
        return fence.group(1).strip()

    # Opening fence even if the closing fence is missing (truncated output)
    if trimmed.startswith("```"):
        first_newline = trimmed.find("\n")
        if first_newline != -1:
            trimmed = trimmed[first_newline + 1 :].strip()
        trailing_fence = trimmed.rfind("```")
        if trailing_fence != -1:
            trimmed = trimmed[:trailing_fence].strip()

    first = trimmed.find("{")
    last = trimmed.rfind("}")
    if first >= 0 and last > first:
        return trimmed[first : last + 1].strip()

    return trimmed


def looks_truncated(text: str) -> bool:
    """A fenced JSON reply that never closed its object was probably cut off by max_tokens."""
    return "```json" in text and not text.strip().endswith("}")
