"""
Command-line interface for voidweaver.

This package contains CLI implementations using Click.
"""

from voidweaver.cli.commands import cli, main

__all__ = ["cli", "main"]
