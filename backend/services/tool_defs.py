"""
Tool definitions for the screen agent.

One tool per structural operation. Each call is normalized into a
single-op Patch by backend.services.session.tool_call_to_patch; `finalize`
ends the turn. cache_control goes on the LAST tool because Anthropic's
prompt caching is prefix-based — the breakpoint must come after all tools
for them to be included in the cached prefix.
"""

_COMPONENT_ID = {
    "type": "string",
    "description": "Lowercase id: letters, digits, '-' or '_', starting with a letter or digit. Max 64 chars.",
    "pattern": "^[a-z0-9][a-z0-9_-]*$",
    "maxLength": 64,
}

FINALIZE_TOOL = "finalize"

TOOLS = [
    {
        "name": "upsert_component",
        "description": (
            "Create a component or replace an existing one with the same id. "
            "The html is a self-contained fragment styled with Tailwind classes. "
            "NEVER include <script> tags or inline event handlers (onclick=, onload=, ...). "
            "A new component that you do not place is appended to the end of the layout."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "id": _COMPONENT_ID,
                "name": {"type": "string", "description": "Human-readable name, max 80 chars."},
                "html": {"type": "string", "description": "Component markup, max 50000 chars. No scripts."},
            },
            "required": ["id", "name", "html"],
        },
    },
    {
        "name": "delete_component",
        "description": "Delete a component and remove it from the layout.",
        "input_schema": {
            "type": "object",
            "properties": {"id": _COMPONENT_ID},
            "required": ["id"],
        },
    },
    {
        "name": "insert_into_layout",
        "description": (
            "Place a component at a position in the layout. If it is already placed it is moved. "
            "Use index 9999 to append at the end."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "component_id": _COMPONENT_ID,
                "index": {"type": "integer", "minimum": 0},
            },
            "required": ["component_id", "index"],
        },
    },
    {
        "name": "move_in_layout",
        "description": "Move a component that is already in the layout to a new position.",
        "input_schema": {
            "type": "object",
            "properties": {
                "component_id": _COMPONENT_ID,
                "to_index": {"type": "integer", "minimum": 0},
            },
            "required": ["component_id", "to_index"],
        },
    },
    {
        "name": "remove_from_layout",
        "description": "Take a component out of the layout. The component itself is kept.",
        "input_schema": {
            "type": "object",
            "properties": {"component_id": _COMPONENT_ID},
            "required": ["component_id"],
        },
    },
    {
        "name": "set_layout",
        "description": "Replace the whole layout with the given ordered list of component ids (max 200).",
        "input_schema": {
            "type": "object",
            "properties": {
                "layout": {"type": "array", "items": _COMPONENT_ID, "maxItems": 200},
            },
            "required": ["layout"],
        },
    },
    {
        "name": "update_screen_meta",
        "description": "Set the page title and/or the global CSS. Omitted fields keep their current value.",
        "input_schema": {
            "type": "object",
            "properties": {
                "title": {"type": "string", "description": "Page title, max 120 chars."},
                "globalCss": {"type": "string", "description": "CSS applied to the whole page, max 20000 chars."},
            },
        },
    },
    {
        "name": FINALIZE_TOOL,
        "description": (
            "Finish the turn. Call exactly once, after all structural changes, "
            "with a short summary of what changed for the user."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "summary": {"type": "string", "description": "1-500 chars, plain language."},
            },
            "required": ["summary"],
        },
        "cache_control": {"type": "ephemeral"},
    },
]

TOOL_NAMES = {tool["name"] for tool in TOOLS}
