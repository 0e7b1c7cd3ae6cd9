"""
API Module for the chat lead service.

FastAPI application with routes for:
- Chat turns with lead capture
- Bot protection status
- Health and metrics
"""

from .main import create_app, app

__all__ = ["create_app", "app"]
