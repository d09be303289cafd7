"""
Snowflake repository for the substitution ledger.

This module implements the LedgerStore protocol on top of three tables
(trainers, substitutions, balances). The repository:
1. Translates between domain models and database rows
2. Encapsulates all SQL
3. Makes every balance write conditional on the value it was decided from

Snowflake doesn't enforce PRIMARY KEY or CHECK constraints, so the
one-balance-per-pair rule and the positive day count are kept by the
writes themselves. A pair's first balance goes in through MERGE keyed on
pair_key (Snowflake serializes MERGEs on a table, unlike plain INSERTs),
updates and deletes match on the previous value, and a write that
touches zero rows means someone else got there first.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Generator, Optional, Protocol
from uuid import UUID

from src.core.ledger.errors import BalanceConflictError, StorageError
from src.core.ledger.models import Balance, Substitution, Trainer, TrainerPair, utcnow


logger = logging.getLogger(__name__)


class SnowflakeConnection(Protocol):
    """
    Protocol for Snowflake connections.

    Using a protocol means tests can provide a stand-in without
    importing the actual snowflake-connector-python.
    """

    def cursor(self): ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...


@dataclass
class SnowflakeConfig:
    """Configuration for Snowflake connection."""
    account: str
    user: str
    password: Optional[str] = None
    private_key_path: Optional[str] = None
    private_key_base64: Optional[str] = None
    database: str = "GYM_LEDGER"
    schema: str = "SUBSTITUTIONS"
    warehouse: str = "COMPUTE_WH"
    role: Optional[str] = None


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS trainers (
        trainer_id VARCHAR(36) PRIMARY KEY,
        name VARCHAR NOT NULL,
        created_at TIMESTAMP_TZ NOT NULL,
        updated_at TIMESTAMP_TZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS substitutions (
        substitution_id VARCHAR(36) PRIMARY KEY,
        substitution_date DATE NOT NULL,
        absent_trainer_id VARCHAR(36) NOT NULL,
        substitute_trainer_id VARCHAR(36) NOT NULL,
        notes VARCHAR,
        created_at TIMESTAMP_TZ NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS balances (
        pair_key VARCHAR(73) PRIMARY KEY,
        debtor_id VARCHAR(36) NOT NULL,
        creditor_id VARCHAR(36) NOT NULL,
        days_owed INTEGER NOT NULL,
        updated_at TIMESTAMP_TZ NOT NULL
    )
    """,
]


class SnowflakeLedgerStore:
    """
    Repository for ledger persistence in Snowflake.

    Each public method is one use case from the LedgerStore protocol.
    Writes outside atomic() autocommit; inside it, the outermost unit
    opens an explicit transaction and commits or rolls back at the end.
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection
        self._depth = 0

    @contextmanager
    def atomic(self) -> Generator[None, None, None]:
        """Run the enclosed calls in one Snowflake transaction."""
        outermost = self._depth == 0
        if outermost:
            self._execute("BEGIN TRANSACTION")
        self._depth += 1
        try:
            yield
        except Exception:
            self._depth -= 1
            if outermost:
                self._rollback()
            raise
        else:
            self._depth -= 1
            if outermost:
                self._commit()

    def create_schema(self) -> None:
        """Create the ledger tables if they don't exist."""
        for statement in SCHEMA_STATEMENTS:
            self._execute(statement)
        logger.info("Ledger schema ensured")

    # -----------------------------------------------------------------------
    # Trainers
    # -----------------------------------------------------------------------

    def get_trainer(self, trainer_id: UUID) -> Optional[Trainer]:
        rows = self._query("""
            SELECT trainer_id, name, created_at, updated_at
            FROM trainers
            WHERE trainer_id = %s
        """, (str(trainer_id),))
        return self._build_trainer(rows[0]) if rows else None

    def list_trainers(self) -> list[Trainer]:
        rows = self._query("""
            SELECT trainer_id, name, created_at, updated_at
            FROM trainers
            ORDER BY name
        """)
        return [self._build_trainer(row) for row in rows]

    def save_trainer(self, trainer: Trainer) -> None:
        """Insert or update a trainer."""
        self._execute("""
            MERGE INTO trainers AS target
            USING (SELECT %s AS trainer_id) AS source
            ON target.trainer_id = source.trainer_id
            WHEN MATCHED THEN UPDATE SET
                name = %s,
                updated_at = %s
            WHEN NOT MATCHED THEN INSERT (
                trainer_id, name, created_at, updated_at
            ) VALUES (%s, %s, %s, %s)
        """, (
            str(trainer.id),
            trainer.name, trainer.updated_at.isoformat(),
            str(trainer.id), trainer.name,
            trainer.created_at.isoformat(), trainer.updated_at.isoformat(),
        ))

    def delete_trainer(self, trainer_id: UUID) -> bool:
        deleted = self._execute("""
            DELETE FROM trainers WHERE trainer_id = %s
        """, (str(trainer_id),))
        return deleted > 0

    # -----------------------------------------------------------------------
    # Substitutions
    # -----------------------------------------------------------------------

    def add_substitution(self, substitution: Substitution) -> None:
        self._execute("""
            INSERT INTO substitutions (
                substitution_id,
                substitution_date,
                absent_trainer_id,
                substitute_trainer_id,
                notes,
                created_at
            ) VALUES (%s, %s, %s, %s, %s, %s)
        """, (
            str(substitution.id),
            substitution.date.isoformat(),
            str(substitution.absent_trainer_id),
            str(substitution.substitute_trainer_id),
            substitution.notes,
            substitution.created_at.isoformat(),
        ))

    def get_substitution(self, substitution_id: UUID) -> Optional[Substitution]:
        rows = self._query("""
            SELECT substitution_id, substitution_date, absent_trainer_id,
                   substitute_trainer_id, notes, created_at
            FROM substitutions
            WHERE substitution_id = %s
        """, (str(substitution_id),))
        return self._build_substitution(rows[0]) if rows else None

    def delete_substitution(self, substitution_id: UUID) -> bool:
        deleted = self._execute("""
            DELETE FROM substitutions WHERE substitution_id = %s
        """, (str(substitution_id),))
        return deleted > 0

    def list_substitutions(self) -> list[Substitution]:
        rows = self._query("""
            SELECT substitution_id, substitution_date, absent_trainer_id,
                   substitute_trainer_id, notes, created_at
            FROM substitutions
            ORDER BY substitution_date DESC, created_at DESC
        """)
        return [self._build_substitution(row) for row in rows]

    def delete_substitutions_for_trainer(self, trainer_id: UUID) -> int:
        return self._execute("""
            DELETE FROM substitutions
            WHERE absent_trainer_id = %s
               OR substitute_trainer_id = %s
        """, (str(trainer_id), str(trainer_id)))

    # -----------------------------------------------------------------------
    # Balances
    # -----------------------------------------------------------------------

    def get_balance(self, pair: TrainerPair) -> Optional[Balance]:
        rows = self._query("""
            SELECT debtor_id, creditor_id, days_owed
            FROM balances
            WHERE pair_key = %s
        """, (pair.key,))
        return self._build_balance(rows[0]) if rows else None

    def list_balances(self) -> list[Balance]:
        rows = self._query("""
            SELECT debtor_id, creditor_id, days_owed
            FROM balances
            ORDER BY days_owed DESC
        """)
        return [self._build_balance(row) for row in rows]

    def write_balance(
        self,
        pair: TrainerPair,
        expected: Optional[Balance],
        new: Optional[Balance],
    ) -> None:
        """
        Compare-and-swap the balance for a pair.

        Raises BalanceConflictError if the row no longer holds `expected`.
        """
        if new is not None and new.pair != pair:
            raise ValueError(f"Balance does not belong to pair {pair.key}")

        now = utcnow().isoformat()

        if expected is None and new is None:
            if self.get_balance(pair) is not None:
                raise BalanceConflictError(f"Balance for pair {pair.key} appeared concurrently")
            return

        if expected is None:
            affected = self._execute("""
                MERGE INTO balances AS target
                USING (SELECT %s AS pair_key) AS source
                ON target.pair_key = source.pair_key
                WHEN NOT MATCHED THEN INSERT (
                    pair_key, debtor_id, creditor_id, days_owed, updated_at
                ) VALUES (%s, %s, %s, %s, %s)
            """, (
                pair.key,
                pair.key, str(new.debtor_id), str(new.creditor_id), new.days_owed, now,
            ))
        elif new is None:
            affected = self._execute("""
                DELETE FROM balances
                WHERE pair_key = %s
                  AND debtor_id = %s
                  AND days_owed = %s
            """, (pair.key, str(expected.debtor_id), expected.days_owed))
        else:
            affected = self._execute("""
                UPDATE balances
                SET debtor_id = %s,
                    creditor_id = %s,
                    days_owed = %s,
                    updated_at = %s
                WHERE pair_key = %s
                  AND debtor_id = %s
                  AND days_owed = %s
            """, (
                str(new.debtor_id), str(new.creditor_id), new.days_owed, now,
                pair.key, str(expected.debtor_id), expected.days_owed,
            ))

        if affected != 1:
            logger.warning(
                "Balance write lost a race",
                extra={"pair": pair.key, "rows_affected": affected}
            )
            raise BalanceConflictError(f"Balance for pair {pair.key} changed concurrently")

    def delete_balances_for_trainer(self, trainer_id: UUID) -> int:
        return self._execute("""
            DELETE FROM balances
            WHERE debtor_id = %s
               OR creditor_id = %s
        """, (str(trainer_id), str(trainer_id)))

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _query(self, sql: str, params: tuple = ()) -> list[tuple]:
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, params)
            return list(cursor.fetchall())
        except Exception as e:
            logger.error(
                "Snowflake query failed",
                extra={"query": sql.strip()[:100], "error": str(e)}
            )
            raise StorageError(f"Query failed: {e}") from e
        finally:
            cursor.close()

    def _execute(self, sql: str, params: tuple = ()) -> int:
        """Run a statement and return the number of rows it affected."""
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, params)
            return max(cursor.rowcount or 0, 0)
        except Exception as e:
            logger.error(
                "Snowflake statement failed",
                extra={"query": sql.strip()[:100], "error": str(e)}
            )
            raise StorageError(f"Statement failed: {e}") from e
        finally:
            cursor.close()

    def _commit(self) -> None:
        try:
            self._conn.commit()
        except Exception as e:
            logger.error("Snowflake commit failed", extra={"error": str(e)})
            self._rollback()
            raise StorageError(f"Commit failed: {e}") from e

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except Exception as e:
            logger.warning("Snowflake rollback failed", extra={"error": str(e)})

    def _build_trainer(self, row: tuple) -> Trainer:
        trainer_id, name, created_at, updated_at = row
        return Trainer(
            id=UUID(str(trainer_id)),
            name=name,
            created_at=_to_datetime(created_at),
            updated_at=_to_datetime(updated_at),
        )

    def _build_substitution(self, row: tuple) -> Substitution:
        substitution_id, on, absent_id, substitute_id, notes, created_at = row
        return Substitution(
            id=UUID(str(substitution_id)),
            date=_to_date(on),
            absent_trainer_id=UUID(str(absent_id)),
            substitute_trainer_id=UUID(str(substitute_id)),
            notes=notes,
            created_at=_to_datetime(created_at),
        )

    def _build_balance(self, row: tuple) -> Balance:
        debtor_id, creditor_id, days_owed = row
        return Balance(
            debtor_id=UUID(str(debtor_id)),
            creditor_id=UUID(str(creditor_id)),
            days_owed=int(days_owed),
        )


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
