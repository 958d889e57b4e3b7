"""Lacrosse league stats extraction engine.

Incremental, resumable extraction of per-season league data into JSON files,
tracked by a per-source manifest.
"""

from .version import __version__
from .config import AppSettings, get_settings

__all__ = [
    "__version__",
    "AppSettings",
    "get_settings",
    # Key modules
    "extractor",
    "manifest",
    "staleness",
    "sources",
]
