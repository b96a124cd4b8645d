"""Command-line interface for the piano tuner."""

from .main import main

__all__ = ["main"]
