"""REPL for the screen CLI."""

from __future__ import annotations

import asyncio
import json
from contextlib import aclosing
from pathlib import Path
from typing import Any

import httpx

from cli.screen_cli.client import ApiClient, TurnReplay
from engine.kernel.reducer import empty_screen, normalize_screen
from engine.kernel.renderer import render_screen_html

# GenerateRequest accepts at most this many prior messages
MAX_HISTORY = 50

HELP_TEXT = """  /view             Show the current layout
  /save <file>      Write the rendered screen as an HTML document
  /dump [file]      Print (or write) the screen as JSON
  /load <file>      Load a screen from a JSON file
  /reset            Start from an empty screen
  /help             Show this help
  /quit             Exit"""


class Repl:
    """Interactive REPL: each line is one generation turn against the current screen."""

    def __init__(self, api_url: str, transport: httpx.AsyncBaseTransport | None = None):
        self.api_url = api_url
        self.transport = transport
        self.screen: dict[str, Any] = empty_screen()
        self.messages: list[dict[str, str]] = []
        self.running = True

    def start(self):
        """Start the REPL."""
        print(f"screen > Connected to {self.api_url}. Describe the screen you want.")

        while self.running:
            try:
                line = input("screen > ").strip()

                if not line:
                    continue

                if line.startswith("/"):
                    self._handle_command(line)
                else:
                    self._send_prompt(line)

            except (EOFError, KeyboardInterrupt):
                print()
                break
            except Exception as e:
                print(f"Error: {e}")

    def _handle_command(self, line: str):
        """Handle REPL commands."""
        parts = line.split(maxsplit=1)
        cmd = parts[0].lower()
        arg = parts[1] if len(parts) > 1 else None

        if cmd == "/quit":
            self.running = False
            print("Goodbye.")
        elif cmd == "/view":
            self._view()
        elif cmd == "/save":
            if arg:
                self._save(arg)
            else:
                print("Usage: /save <file.html>")
        elif cmd == "/dump":
            self._dump(arg)
        elif cmd == "/load":
            if arg:
                self._load(arg)
            else:
                print("Usage: /load <file.json>")
        elif cmd == "/reset":
            self.screen = empty_screen()
            self.messages = []
            print("  Screen cleared.")
        elif cmd == "/help":
            print(HELP_TEXT)
        else:
            print(f"Unknown command: {cmd}")
            print("Type /help for available commands.")

    def _send_prompt(self, text: str):
        try:
            replay = asyncio.run(self.run_turn(text))
        except KeyboardInterrupt:
            print()
            print("  (Interrupted)")
            return
        except httpx.HTTPStatusError as e:
            print(f"  Error: server returned {e.response.status_code}")
            return
        except httpx.HTTPError as e:
            print(f"  Error: {e}")
            return

        if replay.error is not None:
            print(f"  \033[31merror:\033[0m {replay.error}")
            return
        if replay.summary is None:
            print("  Error: stream ended without a final event")
            return

        if replay.drifted:
            print("  \033[33mwarning:\033[0m replayed patches diverged from the final screen; using final")
        self.screen = replay.screen
        self.messages.append({"role": "user", "content": text})
        self.messages.append({"role": "assistant", "content": replay.summary})
        print(f"  \033[32mscreen:\033[0m {replay.summary}")

    async def run_turn(self, text: str) -> TurnReplay:
        """Stream one turn and mirror its patches locally."""
        client = ApiClient(self.api_url, transport=self.transport)
        replay = TurnReplay(self.screen)
        try:
            async with aclosing(client.stream_generate(text, self.messages[-MAX_HISTORY:], self.screen)) as events:
                async for event_type, data in events:
                    if event_type == "tool_call":
                        print(f"  \033[2m· {data['name']} {json.dumps(data.get('args', {}))}\033[0m")
                    replay.handle(event_type, data)
                    if replay.done:
                        break
        finally:
            await client.close()
        return replay

    def _view(self):
        """Print the layout as an indented list."""
        title = self.screen.get("title") or "(untitled)"
        print(f"  {title}")
        if not self.screen["layout"]:
            print("  (empty screen)")
            return
        for i, cid in enumerate(self.screen["layout"], 1):
            name = self.screen["components"][cid]["name"]
            print(f"  {i}. {cid}  {name}")

    def _save(self, path: str):
        Path(path).write_text(render_screen_html(self.screen))
        print(f"  Saved {path}")

    def _dump(self, path: str | None):
        text = json.dumps(self.screen, indent=2)
        if path:
            Path(path).write_text(text)
            print(f"  Wrote {path}")
        else:
            print(text)

    def _load(self, path: str):
        try:
            raw = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            print(f"  Failed to load {path}: {e}")
            return
        if not isinstance(raw, dict):
            print(f"  Failed to load {path}: expected a JSON object")
            return
        self.screen = normalize_screen(raw)
        print(f"  Loaded {path} ({len(self.screen['layout'])} components)")
