"""Command-line frontend.

Usage:
    conduit send "Summarize README.md"
    conduit headless codex --input '/status\\nexit\\n'
    conduit permissions --web-search
    conduit backend
"""

from conduit.frontends.cli.main import main

__all__ = ["main"]
