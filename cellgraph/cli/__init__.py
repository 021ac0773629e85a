"""Command-line interface for cellgraph."""

from .main import cli, main

__all__ = ["cli", "main"]
