"""
Local ledger store.

Keeps trainers, substitutions and balances in memory and, when given a
path, persists them to a single JSON file after every committed unit of
work. This is the "locally persisted" variant of the app and doubles as
the mock backend when Snowflake isn't configured.

Units of work are serialized with a re-entrant lock. On failure the
in-memory state is restored from a snapshot taken at the start of the
outermost unit, so nothing half-applied survives.
"""

import copy
import json
import logging
import os
import threading
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Generator, Optional
from uuid import UUID

from src.core.ledger.errors import BalanceConflictError, StorageError
from src.core.ledger.models import Balance, Substitution, Trainer, TrainerPair

logger = logging.getLogger(__name__)

DEFAULT_STORE_FILENAME = "gym-substitution-storage.json"


class LocalLedgerStore:
    """
    In-memory LedgerStore with optional JSON file persistence.

    Storage layout mirrors the tables in Snowflake:
    - trainers: {trainer_id: Trainer}
    - substitutions: {substitution_id: Substitution}
    - balances: {pair_key: Balance}  (pair_key enforces one row per pair)
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path) if path else None
        if self._path and self._path.is_dir():
            self._path = self._path / DEFAULT_STORE_FILENAME
        self._lock = threading.RLock()
        self._depth = 0
        self._trainers: dict[UUID, Trainer] = {}
        self._substitutions: dict[UUID, Substitution] = {}
        self._balances: dict[str, Balance] = {}

        if self._path and self._path.exists():
            self._load()

        logger.info(
            "Initialized local ledger store",
            extra={"path": str(self._path) if self._path else None}
        )

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @contextmanager
    def atomic(self) -> Generator[None, None, None]:
        """Run a unit of work; the outermost unit commits or restores."""
        with self._lock:
            outermost = self._depth == 0
            snapshot = self._snapshot() if outermost else None
            self._depth += 1
            try:
                yield
                if outermost:
                    self._flush()
            except Exception:
                if outermost:
                    self._restore(snapshot)
                    logger.debug("Local store unit rolled back")
                raise
            finally:
                self._depth -= 1

    # -----------------------------------------------------------------------
    # Trainers
    # -----------------------------------------------------------------------

    def get_trainer(self, trainer_id: UUID) -> Optional[Trainer]:
        with self._lock:
            trainer = self._trainers.get(trainer_id)
            return copy.deepcopy(trainer) if trainer else None

    def list_trainers(self) -> list[Trainer]:
        with self._lock:
            return [copy.deepcopy(t) for t in self._trainers.values()]

    def save_trainer(self, trainer: Trainer) -> None:
        with self.atomic():
            self._trainers[trainer.id] = copy.deepcopy(trainer)

    def delete_trainer(self, trainer_id: UUID) -> bool:
        with self.atomic():
            return self._trainers.pop(trainer_id, None) is not None

    # -----------------------------------------------------------------------
    # Substitutions
    # -----------------------------------------------------------------------

    def add_substitution(self, substitution: Substitution) -> None:
        with self.atomic():
            if substitution.id in self._substitutions:
                raise StorageError(f"Substitution {substitution.id} already exists")
            self._substitutions[substitution.id] = substitution

    def get_substitution(self, substitution_id: UUID) -> Optional[Substitution]:
        with self._lock:
            return self._substitutions.get(substitution_id)

    def delete_substitution(self, substitution_id: UUID) -> bool:
        with self.atomic():
            return self._substitutions.pop(substitution_id, None) is not None

    def list_substitutions(self) -> list[Substitution]:
        with self._lock:
            return list(self._substitutions.values())

    def delete_substitutions_for_trainer(self, trainer_id: UUID) -> int:
        with self.atomic():
            doomed = [s.id for s in self._substitutions.values() if s.involves(trainer_id)]
            for substitution_id in doomed:
                del self._substitutions[substitution_id]
            return len(doomed)

    # -----------------------------------------------------------------------
    # Balances
    # -----------------------------------------------------------------------

    def get_balance(self, pair: TrainerPair) -> Optional[Balance]:
        with self._lock:
            return self._balances.get(pair.key)

    def list_balances(self) -> list[Balance]:
        with self._lock:
            return list(self._balances.values())

    def write_balance(
        self,
        pair: TrainerPair,
        expected: Optional[Balance],
        new: Optional[Balance],
    ) -> None:
        if new is not None and new.pair != pair:
            raise ValueError(f"Balance does not belong to pair {pair.key}")

        with self.atomic():
            current = self._balances.get(pair.key)
            if current != expected:
                raise BalanceConflictError(f"Balance for pair {pair.key} changed concurrently")

            if new is None:
                self._balances.pop(pair.key, None)
            else:
                self._balances[pair.key] = new

    def delete_balances_for_trainer(self, trainer_id: UUID) -> int:
        with self.atomic():
            doomed = [key for key, b in self._balances.items() if b.involves(trainer_id)]
            for key in doomed:
                del self._balances[key]
            return len(doomed)

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------

    def _snapshot(self) -> tuple:
        return (
            copy.deepcopy(self._trainers),
            dict(self._substitutions),
            dict(self._balances),
        )

    def _restore(self, snapshot: tuple) -> None:
        self._trainers, self._substitutions, self._balances = snapshot

    def _flush(self) -> None:
        """Write the whole state to disk, replacing the file atomically."""
        if not self._path:
            return

        document = {
            "trainers": [_trainer_to_dict(t) for t in self._trainers.values()],
            "substitutions": [_substitution_to_dict(s) for s in self._substitutions.values()],
            "balances": [_balance_to_dict(b) for b in self._balances.values()],
        }

        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            logger.error(
                "Failed to write local ledger store",
                extra={"path": str(self._path), "error": str(e)}
            )
            raise StorageError(f"Could not write {self._path}: {e}") from e

    def _load(self) -> None:
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(
                "Failed to read local ledger store",
                extra={"path": str(self._path), "error": str(e)}
            )
            raise StorageError(f"Could not read {self._path}: {e}") from e

        for row in document.get("trainers", []):
            trainer = _trainer_from_dict(row)
            self._trainers[trainer.id] = trainer
        for row in document.get("substitutions", []):
            substitution = _substitution_from_dict(row)
            self._substitutions[substitution.id] = substitution
        for row in document.get("balances", []):
            balance = _balance_from_dict(row)
            if balance.pair.key in self._balances:
                raise StorageError(f"Duplicate balance for pair {balance.pair.key} in {self._path}")
            self._balances[balance.pair.key] = balance


# ---------------------------------------------------------------------------
# JSON mapping
# ---------------------------------------------------------------------------

def _trainer_to_dict(trainer: Trainer) -> dict[str, Any]:
    return {
        "id": str(trainer.id),
        "name": trainer.name,
        "created_at": trainer.created_at.isoformat(),
        "updated_at": trainer.updated_at.isoformat(),
    }


def _trainer_from_dict(row: dict[str, Any]) -> Trainer:
    return Trainer(
        id=UUID(row["id"]),
        name=row["name"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _substitution_to_dict(substitution: Substitution) -> dict[str, Any]:
    return {
        "id": str(substitution.id),
        "date": substitution.date.isoformat(),
        "absent_trainer_id": str(substitution.absent_trainer_id),
        "substitute_trainer_id": str(substitution.substitute_trainer_id),
        "notes": substitution.notes,
        "created_at": substitution.created_at.isoformat(),
    }


def _substitution_from_dict(row: dict[str, Any]) -> Substitution:
    return Substitution(
        id=UUID(row["id"]),
        date=date.fromisoformat(row["date"]),
        absent_trainer_id=UUID(row["absent_trainer_id"]),
        substitute_trainer_id=UUID(row["substitute_trainer_id"]),
        notes=row.get("notes"),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _balance_to_dict(balance: Balance) -> dict[str, Any]:
    return {
        "debtor_id": str(balance.debtor_id),
        "creditor_id": str(balance.creditor_id),
        "days_owed": balance.days_owed,
    }


def _balance_from_dict(row: dict[str, Any]) -> Balance:
    return Balance(
        debtor_id=UUID(row["debtor_id"]),
        creditor_id=UUID(row["creditor_id"]),
        days_owed=int(row["days_owed"]),
    )
