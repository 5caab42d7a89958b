"""HTTP service mode for treelens."""

from .app import create_app, run_service

__all__ = ["create_app", "run_service"]
