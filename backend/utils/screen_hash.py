"""Screen hashing utilities for reconciliation."""

import hashlib
import json
from typing import Any


def hash_screen(screen: dict[str, Any]) -> str:
    """
    Compute a deterministic hash of a screen for reconciliation.

    The hash is computed over the canonical JSON form of the screen, so a
    client that replayed every patch can check it landed on the same state
    as the server's final snapshot.

    Args:
        screen: The screen dict to hash

    Returns:
        Hexadecimal hash string (first 16 characters of SHA-256)
    """
    serialized = json.dumps(screen, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()[:16]
