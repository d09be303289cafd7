"""
Gym Substitution Ledger - tracks day-debts between trainers who cover for each other.

This package contains the complete application:
- core: Framework-agnostic ledger logic
- infrastructure: Persistence adapters (local JSON, Snowflake)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
