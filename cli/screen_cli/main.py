"""Main entry point for the screen CLI."""
from __future__ import annotations

import sys

from cli.screen_cli import __version__
from cli.screen_cli.config import DEFAULT_API_URL, resolve_api_url
from cli.screen_cli.repl import HELP_TEXT, Repl


def print_help():
    """Print help message."""
    print(f"""
screen CLI v{__version__}

Usage:
  screen [options]

Options:
  --api-url URL     Override API endpoint (default: {DEFAULT_API_URL})
  -h, --help        Show this help
  -v, --version     Show version

Environment:
  SCREEN_API_URL    Override API endpoint (same as --api-url)

REPL Commands:
{HELP_TEXT}
""")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        api_url: str | None
        show_help: bool
        show_version: bool
    """
    result = {
        "api_url": None,
        "show_help": False,
        "show_version": False,
    }

    i = 0
    while i < len(args):
        arg = args[i]

        if arg == "--api-url":
            if i + 1 < len(args):
                result["api_url"] = args[i + 1]
                i += 1
            else:
                print("Error: --api-url requires a URL")
                sys.exit(1)
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        else:
            print(f"Unknown option: {arg}")
            print("Run 'screen --help' for usage.")
            sys.exit(1)

        i += 1

    return result


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])

    if args["show_help"]:
        print_help()
        return

    if args["show_version"]:
        print(f"screen-cli {__version__}")
        return

    Repl(resolve_api_url(args["api_url"])).start()


if __name__ == "__main__":
    main()
