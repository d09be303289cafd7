"""
Core business logic for substitution tracking.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. The ledger rules can be tested in
isolation and run against any store that implements LedgerStore.
"""
