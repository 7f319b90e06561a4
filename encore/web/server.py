"""
Web Server Module for Encore.

This module provides the WebServer class that creates and manages the
FastAPI application, registers all routes, and maps core errors to HTTP
responses:

- NotFoundError -> 404
- ValidationError, IndexError -> 400
- ReorderError -> 409 (body carries the reloaded order)
- FetchError, PersistError -> 503
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from encore import __version__
from encore.core import CoreError, NotFoundError, ReorderError, ValidationError
from encore.web.helpers import to_dict
from encore.web.routes.api import register_api_routes
from encore.web.routes.providers import register_provider_routes

if TYPE_CHECKING:
    from encore.core.bands import BandService
    from encore.core.collection import CollectionRegistry
    from encore.core.enrichment.enricher import SongEnricher
    from encore.core.enrichment.lyrics import LyricsClient
    from encore.core.enrichment.spotify import SpotifyClient

logger = logging.getLogger(__name__)


class WebServer:
    """
    FastAPI-based web server for Encore.

    Provides the JSON API used by the web UI plus the provider proxies.
    """

    def __init__(
        self,
        *,
        bands: BandService,
        collections: CollectionRegistry,
        enricher: SongEnricher,
        spotify: SpotifyClient | None = None,
        lyrics: LyricsClient | None = None,
        cors_origins: list[str] | None = None,
    ) -> None:
        """
        Initialize the WebServer.

        Args:
            bands: Band/setlist/profile operations
            collections: Registry of per-setlist song managers
            enricher: Builds songs from search hits
            spotify: Optional track search client
            lyrics: Optional lyrics client
            cors_origins: Allowed CORS origins (default: all)
        """
        self.bands = bands
        self.collections = collections
        self.enricher = enricher
        self.spotify = spotify
        self.lyrics = lyrics

        self.app = FastAPI(
            title="Encore",
            description="Band setlist manager",
            version=__version__,
        )

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins or ["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task | None = None
        self._host = "127.0.0.1"
        self._port = 8300

        self._register_error_handlers()
        self._register_routes()

    def _register_routes(self) -> None:
        """Register all routes with the FastAPI app."""

        @self.app.get("/health")
        async def health_check() -> dict[str, str]:
            """Health check endpoint."""
            return {"status": "ok", "server": "encore"}

        register_api_routes(
            self.app,
            bands=self.bands,
            collections=self.collections,
            enricher=self.enricher,
        )
        register_provider_routes(self.app, spotify=self.spotify, lyrics=self.lyrics)

    def _register_error_handlers(self) -> None:
        @self.app.exception_handler(ReorderError)
        async def reorder_error(request: Request, exc: ReorderError) -> JSONResponse:
            return JSONResponse(
                status_code=409,
                content={
                    "detail": str(exc),
                    "failed_ids": list(exc.failed_ids),
                    "songs": [to_dict(s) for s in exc.items],
                },
            )

        @self.app.exception_handler(IndexError)
        async def index_error(request: Request, exc: IndexError) -> JSONResponse:
            return JSONResponse(status_code=400, content={"detail": str(exc)})

        @self.app.exception_handler(CoreError)
        async def core_error(request: Request, exc: CoreError) -> JSONResponse:
            if isinstance(exc, NotFoundError):
                status = 404
            elif isinstance(exc, ValidationError):
                status = 400
            else:
                status = 503
            if status == 503:
                logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
            return JSONResponse(status_code=status, content={"detail": str(exc)})

    async def start(self, host: str = "127.0.0.1", port: int = 8300) -> None:
        """
        Start the web server in the background.

        Args:
            host: Host address to bind to
            port: Port to listen on
        """
        self._host = host
        self._port = port

        config = uvicorn.Config(
            self.app,
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())

        logger.info("Web server started on http://%s:%d", host, port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self._server is not None:
            self._server.should_exit = True
            if self._serve_task is not None:
                await self._serve_task
            self._server = None
            self._serve_task = None

        logger.info("Web server stopped")

    @property
    def port(self) -> int:
        return self._port

    @property
    def host(self) -> str:
        return self._host
