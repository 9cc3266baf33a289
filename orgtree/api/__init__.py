"""HTTP surface of the org tree service."""

from .app import create_app, build_directory

__all__ = ["create_app", "build_directory"]
