"""fetchspine command-line interface."""

from fetchspine.cli.app import app

__all__ = ["app"]
