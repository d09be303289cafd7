"""
Snowflake persistence for the ledger (server-backed variant).
"""
