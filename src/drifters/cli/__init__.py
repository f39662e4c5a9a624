"""
Drifters CLI Module.

Provides command-line interface for drifters operations.
"""

from drifters.cli.main import main, cli

__all__ = ["main", "cli"]
