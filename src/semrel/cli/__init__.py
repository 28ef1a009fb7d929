"""Command-line interface for semrel."""

from __future__ import annotations

from semrel.cli.app import app, main

__all__ = ["app", "main"]
