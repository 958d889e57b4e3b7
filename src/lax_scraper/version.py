"""Version information for lax-scraper."""

__version__ = "0.1.0"
