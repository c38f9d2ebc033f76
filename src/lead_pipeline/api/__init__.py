"""HTTP surface of the lead pipeline."""

from .app import app, create_app

__all__ = ["app", "create_app"]
