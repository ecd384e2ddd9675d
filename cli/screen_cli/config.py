"""
Configuration for the screen CLI.

API URL resolution order:
  1. --api-url command line flag
  2. SCREEN_API_URL environment variable
  3. Fallback: http://localhost:8000
"""

from __future__ import annotations

import os

DEFAULT_API_URL = "http://localhost:8000"


def resolve_api_url(override: str | None = None) -> str:
    """Pick the API URL from flag, environment, then default."""
    url = override or os.environ.get("SCREEN_API_URL") or DEFAULT_API_URL
    return url.rstrip("/")
