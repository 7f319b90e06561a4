"""
Encore Server - Main Server Module

This module contains the EncoreServer class, the composition root that wires
settings, the record store, the provider clients and the web server together
and manages the application lifecycle.
"""

import asyncio
import logging
import signal
from pathlib import Path

from encore.config import Settings
from encore.core.bands import BandService
from encore.core.collection import CollectionRegistry
from encore.core.enrichment.enricher import SongEnricher
from encore.core.enrichment.lyrics import LyricsClient
from encore.core.enrichment.spotify import SpotifyClient
from encore.core.events import EventBus, SetlistChangedEvent
from encore.core.record_store import SqliteRecordStore
from encore.web.server import WebServer

logger = logging.getLogger(__name__)


class EncoreServer:
    """
    Main Encore server that coordinates all components.

    The server manages:
    - SQLite record store (bands, setlists, songs, profiles)
    - Collection registry (one ordered song manager per active setlist)
    - Spotify and lyrics clients used to enrich imported songs
    - Web server for the JSON API
    """

    def __init__(self, settings: Settings) -> None:
        """
        Initialize the Encore server.

        Args:
            settings: Loaded configuration (see `encore.config.load_settings`).
        """
        self.settings = settings

        self.events = EventBus()
        self.store = SqliteRecordStore(Path(settings.database.path))
        self.bands = BandService(self.store)
        self.collections = CollectionRegistry(self.store, events=self.events)

        self.spotify = SpotifyClient(
            settings.spotify.client_id,
            settings.spotify.client_secret,
            market=settings.spotify.market,
            timeout=settings.spotify.timeout,
        )
        self.lyrics = LyricsClient(
            genius_access_token=settings.lyrics.genius_access_token,
            timeout=settings.lyrics.timeout,
        )
        self.enricher = SongEnricher(
            lyrics=self.lyrics,
            features=self.spotify if self.spotify.configured else None,
            lyrics_timeout=settings.enrichment.lyrics_timeout,
            features_timeout=settings.enrichment.features_timeout,
        )

        self.web_server = WebServer(
            bands=self.bands,
            collections=self.collections,
            enricher=self.enricher,
            spotify=self.spotify if self.spotify.configured else None,
            lyrics=self.lyrics,
            cors_origins=settings.server.cors_origins,
        )

        self._running = False
        self._shutdown_event: asyncio.Event | None = None

    async def start(self) -> None:
        """Start all server components."""
        host = self.settings.server.host
        port = self.settings.server.port
        logger.info("Starting Encore server on %s:%d", host, port)

        self._running = True
        self._shutdown_event = asyncio.Event()

        await self.store.open()
        await self.store.ensure_schema()

        await self.events.subscribe("setlist.*", self._log_setlist_change)

        if not self.spotify.configured:
            logger.warning("Spotify credentials missing; track search and key detection disabled")

        await self.web_server.start(host=host, port=port)
        logger.info("Encore server started")

    async def stop(self) -> None:
        """Stop all server components gracefully."""
        if not self._running:
            return

        logger.info("Stopping Encore server...")
        self._running = False

        # Stop Web server first (no new requests while the store closes)
        await self.web_server.stop()

        await self.spotify.aclose()
        await self.lyrics.aclose()
        await self.events.clear()
        await self.store.close()

        logger.info("Encore server stopped")

    async def run(self) -> None:
        """
        Run the server until shutdown is requested.

        This method starts all components and waits for a shutdown signal
        (SIGINT or SIGTERM).
        """
        await self.start()

        loop = asyncio.get_running_loop()

        def handle_signal() -> None:
            logger.info("Received shutdown signal")
            if self._shutdown_event:
                self._shutdown_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal)
            except NotImplementedError:
                # Signal handlers not supported on Windows
                pass

        try:
            if self._shutdown_event:
                await self._shutdown_event.wait()
        finally:
            await self.stop()

    @property
    def is_running(self) -> bool:
        return self._running

    async def _log_setlist_change(self, event: SetlistChangedEvent) -> None:
        if event.action == "reverted":
            logger.warning("Setlist %s order reverted to stored order", event.setlist_id)
        else:
            logger.debug("Setlist %s: %s %s", event.setlist_id, event.action, event.song_ids)
