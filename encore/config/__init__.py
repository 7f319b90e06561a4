"""
Configuration management for Encore.

Settings are read from a TOML file (the bundled `defaults.toml` unless a path
is given) and then overlaid with environment variables, so secrets such as
API credentials never have to live in the file.

The resulting `Settings` object is handed to the components that need it by
the composition root (`EncoreServer`); nothing reads configuration from
module globals.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

logger = logging.getLogger(__name__)

# Path to the config directory
CONFIG_DIR = Path(__file__).parent
DEFAULT_CONFIG_PATH = CONFIG_DIR / "defaults.toml"


@dataclass
class ServerSettings:
    host: str = "127.0.0.1"
    port: int = 8300
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class DatabaseSettings:
    path: str = "encore.sqlite3"


@dataclass
class SpotifySettings:
    client_id: str | None = None
    client_secret: str | None = None
    market: str = "US"
    timeout: float = 10.0


@dataclass
class LyricsSettings:
    genius_access_token: str | None = None
    timeout: float = 8.0


@dataclass
class EnrichmentSettings:
    lyrics_timeout: float = 8.0
    features_timeout: float = 5.0


@dataclass
class Settings:
    """Loaded Encore configuration."""

    server: ServerSettings = field(default_factory=ServerSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    spotify: SpotifySettings = field(default_factory=SpotifySettings)
    lyrics: LyricsSettings = field(default_factory=LyricsSettings)
    enrichment: EnrichmentSettings = field(default_factory=EnrichmentSettings)


# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "ENCORE_HOST": ("server", "host"),
    "ENCORE_PORT": ("server", "port"),
    "ENCORE_DB_PATH": ("database", "path"),
    "SPOTIFY_CLIENT_ID": ("spotify", "client_id"),
    "SPOTIFY_CLIENT_SECRET": ("spotify", "client_secret"),
    "GENIUS_ACCESS_TOKEN": ("lyrics", "genius_access_token"),
}


def _optional_str(value: object) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def _section(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section [{name}] must be a table")
    return value


def parse_settings(data: Mapping[str, Any]) -> Settings:
    """Build `Settings` from already-parsed TOML data. Unknown keys are ignored."""
    server = _section(data, "server")
    database = _section(data, "database")
    spotify = _section(data, "spotify")
    lyrics = _section(data, "lyrics")
    enrichment = _section(data, "enrichment")

    return Settings(
        server=ServerSettings(
            host=str(server.get("host", "127.0.0.1")),
            port=int(server.get("port", 8300)),
            cors_origins=[str(o) for o in server.get("cors_origins", ["*"])],
        ),
        database=DatabaseSettings(path=str(database.get("path", "encore.sqlite3"))),
        spotify=SpotifySettings(
            client_id=_optional_str(spotify.get("client_id")),
            client_secret=_optional_str(spotify.get("client_secret")),
            market=str(spotify.get("market", "US")),
            timeout=float(spotify.get("timeout", 10.0)),
        ),
        lyrics=LyricsSettings(
            genius_access_token=_optional_str(lyrics.get("genius_access_token")),
            timeout=float(lyrics.get("timeout", 8.0)),
        ),
        enrichment=EnrichmentSettings(
            lyrics_timeout=float(enrichment.get("lyrics_timeout", 8.0)),
            features_timeout=float(enrichment.get("features_timeout", 5.0)),
        ),
    )


def apply_env(settings: Settings, environ: Mapping[str, str] | None = None) -> Settings:
    """Overlay environment variables (see ENV_OVERRIDES) onto `settings` in place."""
    env = os.environ if environ is None else environ
    for var, (section_name, key) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw is None or raw == "":
            continue
        section = getattr(settings, section_name)
        current = getattr(section, key)
        value: Any = int(raw) if isinstance(current, int) else raw
        setattr(section, key, value)
        logger.debug("Config %s.%s overridden by %s", section_name, key, var)
    return settings


def load_settings(
    config_path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> Settings:
    """
    Load settings from a TOML file and the environment.

    Args:
        config_path: Path to a TOML file. If None, uses the bundled defaults.
        environ: Environment mapping (defaults to `os.environ`).
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    logger.debug("Loading config from %s", config_path)

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    return apply_env(parse_settings(data), environ)
