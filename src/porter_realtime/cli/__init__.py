"""Command line interface for porter-realtime."""

from porter_realtime.cli.app import app

__all__ = ["app"]
