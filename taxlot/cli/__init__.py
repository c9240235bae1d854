"""Command line interface."""

from .main import main, run, process_operations

__all__ = ["main", "run", "process_operations"]
