"""
Infrastructure layer - persistence adapters for the ledger.

Each subdirectory implements the LedgerStore protocol:
- local: In-memory state, optionally persisted to a JSON file
- snowflake: Database persistence

These adapters translate between storage formats and our domain models.
"""
