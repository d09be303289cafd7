"""
Shared fixtures for the ledger tests.

The Snowflake repository is exercised against sqlite3 through a thin
DB-API wrapper that translates %s placeholders. sqlite has no MERGE, so
the wrapper runs the repository's MERGE upserts as a key lookup followed
by an UPDATE or INSERT.
"""

import re
import sqlite3
from uuid import UUID, uuid4

import pytest

from src.core.ledger.ledger import BalanceLedger
from src.core.ledger.service import SubstitutionService
from src.infrastructure.local.store import LocalLedgerStore
from src.infrastructure.snowflake.repositories.ledger import SnowflakeLedgerStore


MERGE_PATTERN = re.compile(
    r"MERGE INTO (?P<table>\w+) AS target "
    r"USING \(SELECT %s AS (?P<key>\w+)\) AS source "
    r"ON target\.\w+ = source\.\w+ "
    r"(?:WHEN MATCHED THEN UPDATE SET (?P<set>.+?) )?"
    r"WHEN NOT MATCHED THEN INSERT \( ?(?P<columns>.+?) ?\) "
    r"VALUES \((?P<values>.+?)\)$"
)


class SqliteCursor:
    """Cursor wrapper accepting Snowflake's %s paramstyle and MERGE upserts."""

    def __init__(self, cursor: sqlite3.Cursor) -> None:
        self._cursor = cursor
        self._rowcount: int | None = None

    def execute(self, sql: str, params: tuple = ()) -> "SqliteCursor":
        statement = " ".join(sql.split())
        self._rowcount = None
        if statement.startswith("MERGE INTO"):
            self._merge(statement, params)
        else:
            self._cursor.execute(sql.replace("%s", "?"), params)
        return self

    def _merge(self, statement: str, params: tuple) -> None:
        match = MERGE_PATTERN.match(statement)
        if match is None:
            raise sqlite3.OperationalError(f"Unsupported MERGE: {statement[:80]}")

        table, key = match["table"], match["key"]
        key_value, rest = params[0], tuple(params[1:])

        self._cursor.execute(f"SELECT 1 FROM {table} WHERE {key} = ?", (key_value,))
        exists = self._cursor.fetchone() is not None

        set_clause = match["set"]
        set_count = set_clause.count("%s") if set_clause else 0

        if exists:
            if set_clause is None:
                self._rowcount = 0
                return
            self._cursor.execute(
                f"UPDATE {table} SET {set_clause.replace('%s', '?')} WHERE {key} = ?",
                rest[:set_count] + (key_value,),
            )
        else:
            self._cursor.execute(
                f"INSERT INTO {table} ({match['columns']}) VALUES ({match['values'].replace('%s', '?')})",
                rest[set_count:],
            )
        self._rowcount = self._cursor.rowcount

    def fetchone(self):
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    @property
    def rowcount(self) -> int:
        if self._rowcount is not None:
            return self._rowcount
        return self._cursor.rowcount

    def close(self) -> None:
        self._cursor.close()


class SqliteConnection:
    """In-memory stand-in for a Snowflake connection."""

    def __init__(self) -> None:
        # Autocommit unless a statement opens a transaction explicitly,
        # which is how the Snowflake connector behaves by default.
        self._conn = sqlite3.connect(":memory:", isolation_level=None)

    def cursor(self) -> SqliteCursor:
        return SqliteCursor(self._conn.cursor())

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


@pytest.fixture
def sqlite_connection():
    conn = SqliteConnection()
    yield conn
    conn.close()


@pytest.fixture
def snowflake_store(sqlite_connection) -> SnowflakeLedgerStore:
    store = SnowflakeLedgerStore(sqlite_connection)
    store.create_schema()
    return store


@pytest.fixture
def local_store() -> LocalLedgerStore:
    return LocalLedgerStore()


@pytest.fixture(params=["local", "snowflake"])
def store(request):
    """Every store implementation, for contract tests."""
    if request.param == "local":
        return LocalLedgerStore()
    conn = SqliteConnection()
    request.addfinalizer(conn.close)
    snowflake = SnowflakeLedgerStore(conn)
    snowflake.create_schema()
    return snowflake


@pytest.fixture
def ledger(store) -> BalanceLedger:
    return BalanceLedger(store, retry_attempts=3, retry_max_wait_seconds=0)


@pytest.fixture
def service(ledger) -> SubstitutionService:
    return SubstitutionService(ledger)


@pytest.fixture
def alice() -> UUID:
    return uuid4()


@pytest.fixture
def bob() -> UUID:
    return uuid4()


@pytest.fixture
def carol() -> UUID:
    return uuid4()
