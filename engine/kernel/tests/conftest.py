"""
Engine kernel test configuration.

Shared screen builders for kernel tests. Everything here is pure data; no
event loop or storage is involved.
"""

import pytest


@pytest.fixture
def landing_screen():
    """A small valid screen: hero, features, footer."""
    return {
        "title": "Acme",
        "globalCss": ".accent { color: red; }",
        "components": {
            "hero": {"name": "Hero", "html": "<section><h1>Acme</h1></section>"},
            "features": {"name": "Features", "html": "<section>Fast. Safe.</section>"},
            "footer": {"name": "Footer", "html": "<footer>© Acme</footer>"},
        },
        "layout": ["hero", "features", "footer"],
    }
