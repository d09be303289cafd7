"""
Local persistence: in-memory state with optional JSON file backing.
"""

from .store import DEFAULT_STORE_FILENAME, LocalLedgerStore

__all__ = ["DEFAULT_STORE_FILENAME", "LocalLedgerStore"]
