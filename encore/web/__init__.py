"""
Encore Web Layer.

This package provides the HTTP/JSON API for Encore.

Components:
- WebServer: FastAPI application with all routes
- routes.api: bands, setlists and ordered songs
- routes.providers: search and lyrics proxies
"""

from encore.web.server import WebServer

__all__ = [
    "WebServer",
]
