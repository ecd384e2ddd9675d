"""
Screen Kernel — Renderer

Pure function: (screen, component_id?) → HTML document string
No AI. No IO. Deterministic: same input → same output, always.

The document is meant for a sandboxed iframe (srcdoc). Before any component
markup or global CSS reaches it, <script> elements and inline on*= handler
attributes are stripped. This is a last filter on the display path; the
reducer stores whatever the agent sent.
"""

from __future__ import annotations

import re
from typing import Any

import chevron

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_QUOTED_HANDLER_RE = re.compile(r"""\son[a-z]+\s*=\s*(['"])[\s\S]*?\1""", re.IGNORECASE)
_BARE_HANDLER_RE = re.compile(r"\son[a-z]+\s*=\s*[^\s>]+", re.IGNORECASE)

DEFAULT_SCREEN_TITLE = "Generated Screen"

_DOCUMENT = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>{{title}}</title>
    <script src="https://cdn.tailwindcss.com"></script>
    <style>
      :root { color-scheme: light; }
      html, body { height: 100%; }
      body { margin: 0; font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial, "Apple Color Emoji", "Segoe UI Emoji"; }
      {{{global_css}}}
    </style>
  </head>
  <body>
    <div class="min-h-screen {{surface}} text-zinc-900">
      {{{body}}}
    </div>
  </body>
</html>"""

_EMPTY_SCREEN = """<div class="min-h-[50vh] flex items-center justify-center text-zinc-500">
           <div class="text-center space-y-2">
             <div class="text-sm font-medium">No screen yet</div>
             <div class="text-xs">Describe a page in the prompt box to generate one.</div>
           </div>
         </div>"""

_EMPTY_COMPONENT = """<div class="min-h-[40vh] flex items-center justify-center text-zinc-500">
         <div class="text-center space-y-2">
           <div class="text-sm font-medium">No component selected</div>
           <div class="text-xs">Pick a component to preview it here.</div>
         </div>
       </div>"""


def strip_scripts_and_handlers(markup: str) -> str:
    """Remove <script> elements and inline on*= event handler attributes."""
    out = _SCRIPT_RE.sub("", markup)
    out = _QUOTED_HANDLER_RE.sub("", out)
    out = _BARE_HANDLER_RE.sub("", out)
    return out


def _document(title: str, global_css: str, body: str, surface: str) -> str:
    return chevron.render(
        _DOCUMENT,
        {
            "title": title,
            "global_css": strip_scripts_and_handlers(global_css),
            "body": body,
            "surface": surface,
        },
    )


def render_screen_html(screen: dict[str, Any] | None) -> str:
    """
    Render the whole screen: components in layout order, empty-state
    placeholder when there is nothing to show.
    """
    screen = screen or {}
    components = screen.get("components") or {}

    parts = []
    for component_id in screen.get("layout") or []:
        component = components.get(component_id)
        if not component:
            continue
        parts.append(strip_scripts_and_handlers(component.get("html", "")))

    body = "\n".join(parts) if parts else _EMPTY_SCREEN
    return _document(
        title=screen.get("title") or DEFAULT_SCREEN_TITLE,
        global_css=screen.get("globalCss") or "",
        body=body,
        surface="bg-zinc-50",
    )


def render_component_html(screen: dict[str, Any] | None, component_id: str | None) -> str:
    """Render one component on its own, with the screen's global CSS."""
    screen = screen or {}
    component = (screen.get("components") or {}).get(component_id) if component_id else None

    body = strip_scripts_and_handlers(component.get("html", "")) if component else _EMPTY_COMPONENT
    return _document(
        title=f"Component: {component_id}" if component_id else "Component Preview",
        global_css=screen.get("globalCss") or "",
        body=body,
        surface="bg-white",
    )
