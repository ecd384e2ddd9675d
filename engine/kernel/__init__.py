"""
Screen Kernel — the pure engine.

Three components:
  schema    — pydantic wire models + the full screen validation
  reducer   — (screen, patch) → screen  (pure, deterministic, total)
  renderer  — screen → sandbox HTML document (scripts and handlers stripped)
"""

from engine.kernel.reducer import apply_all, apply_patch, empty_screen, normalize_screen, replay
from engine.kernel.renderer import render_component_html, render_screen_html, strip_scripts_and_handlers
from engine.kernel.schema import Patch, Screen, ScreenValidationError, check_invariants, validate_screen

__all__ = [
    "apply_patch",
    "apply_all",
    "replay",
    "empty_screen",
    "normalize_screen",
    "render_screen_html",
    "render_component_html",
    "strip_scripts_and_handlers",
    "Patch",
    "Screen",
    "ScreenValidationError",
    "check_invariants",
    "validate_screen",
]
