"""
The balance ledger.

BalanceLedger owns a reference to a LedgerStore and runs the pure rules
from balances.py against it: read the pair's balance, decide, write back
conditionally. One ledger instance is built per store and handed to
whoever needs it. There is no module-level state.
"""

import logging
from contextlib import AbstractContextManager
from typing import Callable, Optional, Protocol, TypeVar
from uuid import UUID

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from . import balances
from .errors import InvalidInputError, StorageError
from .models import Balance, Substitution, Trainer, TrainerPair

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class LedgerStore(Protocol):
    """
    Interface for ledger persistence.

    Both the local JSON store and the Snowflake repository implement
    this. atomic() is re-entrant: nested units join the outermost one,
    which commits on clean exit and rolls back on any exception.

    write_balance is a compare-and-swap: it must raise
    BalanceConflictError if the stored balance for the pair is no
    longer `expected`, and otherwise leave `new` stored (None deletes).
    """

    def atomic(self) -> AbstractContextManager[None]: ...

    def get_trainer(self, trainer_id: UUID) -> Optional[Trainer]: ...
    def list_trainers(self) -> list[Trainer]: ...
    def save_trainer(self, trainer: Trainer) -> None: ...
    def delete_trainer(self, trainer_id: UUID) -> bool: ...

    def add_substitution(self, substitution: Substitution) -> None: ...
    def get_substitution(self, substitution_id: UUID) -> Optional[Substitution]: ...
    def delete_substitution(self, substitution_id: UUID) -> bool: ...
    def list_substitutions(self) -> list[Substitution]: ...
    def delete_substitutions_for_trainer(self, trainer_id: UUID) -> int: ...

    def get_balance(self, pair: TrainerPair) -> Optional[Balance]: ...
    def list_balances(self) -> list[Balance]: ...
    def write_balance(
        self,
        pair: TrainerPair,
        expected: Optional[Balance],
        new: Optional[Balance],
    ) -> None: ...
    def delete_balances_for_trainer(self, trainer_id: UUID) -> int: ...


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

class BalanceLedger:
    """
    Keeps one net day-balance per pair of trainers.

    apply_substitution / revert_substitution are complete operations:
    each runs in its own atomic unit and is retried from scratch if the
    store fails. The *_once variants do a single read-decide-write and
    are meant to run inside a caller's unit (see SubstitutionService).
    """

    def __init__(
        self,
        store: LedgerStore,
        retry_attempts: int = 3,
        retry_max_wait_seconds: float = 2.0,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self._store = store
        self._retry_attempts = retry_attempts
        self._retry_max_wait_seconds = retry_max_wait_seconds

    @property
    def store(self) -> LedgerStore:
        return self._store

    def apply_substitution(self, absent_id: UUID, substitute_id: UUID) -> Optional[Balance]:
        """absent_id incurs one day of debt to substitute_id. Returns the pair's balance."""
        return self.run(lambda: self.apply_once(absent_id, substitute_id))

    def revert_substitution(self, absent_id: UUID, substitute_id: UUID) -> Optional[Balance]:
        """Undo one apply_substitution(absent_id, substitute_id). Returns the pair's balance."""
        return self.run(lambda: self.revert_once(absent_id, substitute_id))

    def apply_once(self, absent_id: UUID, substitute_id: UUID) -> Optional[Balance]:
        return self._update(absent_id, substitute_id, balances.apply_substitution, "apply")

    def revert_once(self, absent_id: UUID, substitute_id: UUID) -> Optional[Balance]:
        return self._update(absent_id, substitute_id, balances.revert_substitution, "revert")

    def net_balance(self, trainer_id: UUID, other_id: UUID) -> int:
        """
        Signed days between two trainers.

        Positive: trainer_id owes other_id. Negative: other_id owes
        trainer_id. Zero: they're even.
        """
        pair = _pair_or_invalid(trainer_id, other_id)
        return balances.net_balance(self._store.get_balance(pair), trainer_id, other_id)

    def run(self, operation: Callable[[], T]) -> T:
        """
        Run operation as one atomic unit, retrying the whole unit on StorageError.

        Each attempt starts with fresh reads, since a failed attempt was
        rolled back and anything it decided may be stale.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=0.1, max=self._retry_max_wait_seconds),
            retry=retry_if_exception_type(StorageError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                with self._store.atomic():
                    result = operation()
        return result

    def _update(
        self,
        absent_id: UUID,
        substitute_id: UUID,
        rule: Callable[[Optional[Balance], UUID, UUID], Optional[Balance]],
        action: str,
    ) -> Optional[Balance]:
        pair = _pair_or_invalid(absent_id, substitute_id)

        with self._store.atomic():
            current = self._store.get_balance(pair)
            updated = rule(current, absent_id, substitute_id)
            self._store.write_balance(pair, expected=current, new=updated)

        logger.info(
            "Balance updated",
            extra={
                "action": action,
                "pair": pair.key,
                "absent_trainer_id": str(absent_id),
                "substitute_trainer_id": str(substitute_id),
                "net_before": balances.net_balance(current, absent_id, substitute_id),
                "net_after": balances.net_balance(updated, absent_id, substitute_id),
            }
        )

        return updated


def _pair_or_invalid(trainer_id: UUID, other_id: UUID) -> TrainerPair:
    if trainer_id == other_id:
        raise InvalidInputError("A trainer cannot substitute for themselves")
    return TrainerPair.of(trainer_id, other_id)
