"""Server-sent event framing."""

import json
from typing import Any


def format_sse(event: str, data: Any) -> str:
    """One SSE record: `event:` line, single-line JSON `data:` line, blank line."""
    return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"
