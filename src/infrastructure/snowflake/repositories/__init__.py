"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .ledger import SCHEMA_STATEMENTS, SnowflakeConfig, SnowflakeLedgerStore

__all__ = ["SCHEMA_STATEMENTS", "SnowflakeConfig", "SnowflakeLedgerStore"]
