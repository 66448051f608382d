"""Command-line interface for orientplan."""

from orientplan.cli.main import cli

__all__ = ["cli"]
