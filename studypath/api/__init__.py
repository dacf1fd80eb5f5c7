"""HTTP API for learning sessions."""

from .main import create_app

__all__ = ["create_app"]
