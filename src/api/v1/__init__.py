"""
API v1 package.

Contains versioned API routes for the company claim verification API.
"""

from src.api.v1.routes import admin_router, router

__all__ = ["admin_router", "router"]
