"""Command-line interface package for tally."""

__all__ = ["main"]


def main(*args, **kwargs):
    """Entry point that defers heavy imports until needed."""
    from .commands import main as commands_main

    return commands_main(*args, **kwargs)
