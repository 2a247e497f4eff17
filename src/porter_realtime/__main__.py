"""porter-realtime CLI bootstrap."""

from __future__ import annotations

from porter_realtime.cli import app

if __name__ == "__main__":
    app()
