"""notelens command-line interface."""

from notelens.cli.main import cli

__all__ = ["cli"]
