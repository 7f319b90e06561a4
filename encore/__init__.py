"""
Encore - a band setlist manager.

Encore keeps the songs of a band's setlists in a stable order,
persists them in SQLite and fills in song metadata (lyrics, a suggested
chord progression, artwork) from public music APIs.
"""

__version__ = "0.1.0"
__author__ = "Encore Contributors"
__license__ = "GPL-2.0"

from encore.server import EncoreServer

__all__ = ["EncoreServer", "__version__"]
