"""HTTP trigger layer for the voice pipeline."""

from .app import AppState, create_app

__all__ = ["AppState", "create_app"]
