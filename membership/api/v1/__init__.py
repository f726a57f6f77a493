"""
API v1 package.

Contains versioned API routes for the account lifecycle API.
"""

from membership.api.v1.routes import router

__all__ = ["router"]
