"""
Web Routes Package.

This package contains FastAPI route modules:
- api: REST API endpoints (/api/bands, /api/setlists, ...)
- providers: Search and lyrics proxies (/api/search, /api/lyrics)
"""

from encore.web.routes.api import register_api_routes
from encore.web.routes.providers import register_provider_routes

__all__ = [
    "register_api_routes",
    "register_provider_routes",
]
