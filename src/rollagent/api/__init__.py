"""
API module for the FastAPI application.
"""

from .app import create_app

__all__ = ["create_app"]