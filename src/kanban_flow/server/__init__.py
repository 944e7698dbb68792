"""HTTP surface for the board service."""

from .app import create_app

__all__ = ["create_app"]
