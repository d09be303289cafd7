"""
Ledger configuration.

Settings come from environment variables (or .env). Mock mode swaps
Snowflake for the local JSON-backed store.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
