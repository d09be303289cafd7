"""
Substitution service.

This is the application layer over the ledger: the trainer registry,
recording and deleting substitutions, and the read models the UI needs
(history, balance overview, dashboard counts).

Every write runs through BalanceLedger.run, so a substitution record and
the balance change it causes are committed together or not at all, and
a storage failure retries the whole thing.
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from .errors import (
    InvalidInputError,
    SubstitutionNotFoundError,
    TrainerNotFoundError,
)
from .ledger import BalanceLedger, LedgerStore
from .models import (
    Balance,
    LedgerSummary,
    Substitution,
    SubstitutionOutcome,
    Trainer,
    TrainerRemoval,
)

logger = logging.getLogger(__name__)


class SubstitutionService:
    """
    Use cases for the substitution tracker.

    Each method corresponds to something a user can do:
    - manage trainers (add, rename, remove with cascade)
    - record or delete a substitution
    - look at history, balances and the dashboard
    """

    def __init__(self, ledger: BalanceLedger) -> None:
        self._ledger = ledger
        self._store: LedgerStore = ledger.store

    @property
    def ledger(self) -> BalanceLedger:
        return self._ledger

    # -----------------------------------------------------------------------
    # Trainers
    # -----------------------------------------------------------------------

    def add_trainer(self, name: str) -> Trainer:
        trainer = _build_trainer(name)
        self._ledger.run(lambda: self._store.save_trainer(trainer))

        logger.info(
            "Trainer added",
            extra={"trainer_id": str(trainer.id), "trainer_name": trainer.name}
        )
        return trainer

    def rename_trainer(self, trainer_id: UUID, name: str) -> Trainer:
        if not name.strip():
            raise InvalidInputError("Trainer name cannot be empty")

        def rename() -> Trainer:
            trainer = self._require_trainer(trainer_id)
            trainer.rename(name)
            self._store.save_trainer(trainer)
            return trainer

        trainer = self._ledger.run(rename)
        logger.info(
            "Trainer renamed",
            extra={"trainer_id": str(trainer_id), "trainer_name": trainer.name}
        )
        return trainer

    def get_trainer(self, trainer_id: UUID) -> Trainer:
        return self._require_trainer(trainer_id)

    def list_trainers(self) -> list[Trainer]:
        """All trainers, alphabetical by name."""
        return sorted(self._store.list_trainers(), key=lambda t: t.name.casefold())

    def trainer_names(self) -> dict[UUID, str]:
        """Display name for every trainer id, for labelling history and balances."""
        return {t.id: t.name for t in self._store.list_trainers()}

    def remove_trainer(self, trainer_id: UUID) -> TrainerRemoval:
        """
        Delete a trainer along with every substitution and balance naming them.

        All three deletes happen in one unit. Removing only some of them
        would leave substitutions or balances pointing at nobody.
        """
        def remove() -> TrainerRemoval:
            trainer = self._require_trainer(trainer_id)
            substitutions_removed = self._store.delete_substitutions_for_trainer(trainer_id)
            balances_removed = self._store.delete_balances_for_trainer(trainer_id)
            self._store.delete_trainer(trainer_id)
            return TrainerRemoval(
                trainer=trainer,
                substitutions_removed=substitutions_removed,
                balances_removed=balances_removed,
            )

        removal = self._ledger.run(remove)
        logger.info(
            "Trainer removed",
            extra={
                "trainer_id": str(trainer_id),
                "substitutions_removed": removal.substitutions_removed,
                "balances_removed": removal.balances_removed,
            }
        )
        return removal

    # -----------------------------------------------------------------------
    # Substitutions
    # -----------------------------------------------------------------------

    def record_substitution(
        self,
        absent_trainer_id: UUID,
        substitute_trainer_id: UUID,
        on: date,
        notes: Optional[str] = None,
    ) -> SubstitutionOutcome:
        """
        Record that substitute_trainer_id covered for absent_trainer_id.

        The absent trainer picks up one day of debt to the substitute
        (or works off a day the substitute owed them).
        """
        if absent_trainer_id == substitute_trainer_id:
            raise InvalidInputError("A trainer cannot substitute for themselves")

        notes = notes.strip() if notes else None

        def record() -> SubstitutionOutcome:
            self._require_trainer(absent_trainer_id)
            self._require_trainer(substitute_trainer_id)

            substitution = Substitution(
                absent_trainer_id=absent_trainer_id,
                substitute_trainer_id=substitute_trainer_id,
                date=on,
                notes=notes or None,
            )
            self._store.add_substitution(substitution)
            balance = self._ledger.apply_once(absent_trainer_id, substitute_trainer_id)
            return SubstitutionOutcome(substitution=substitution, balance=balance)

        outcome = self._ledger.run(record)
        logger.info(
            "Substitution recorded",
            extra={
                "substitution_id": str(outcome.substitution.id),
                "absent_trainer_id": str(absent_trainer_id),
                "substitute_trainer_id": str(substitute_trainer_id),
                "date": on.isoformat(),
            }
        )
        return outcome

    def remove_substitution(self, substitution_id: UUID) -> SubstitutionOutcome:
        """Delete a recorded substitution and take its day back out of the ledger."""
        def remove() -> SubstitutionOutcome:
            substitution = self._store.get_substitution(substitution_id)
            if substitution is None:
                raise SubstitutionNotFoundError(f"Substitution {substitution_id} not found")

            self._store.delete_substitution(substitution_id)
            balance = self._ledger.revert_once(
                substitution.absent_trainer_id,
                substitution.substitute_trainer_id,
            )
            return SubstitutionOutcome(substitution=substitution, balance=balance)

        outcome = self._ledger.run(remove)
        logger.info(
            "Substitution removed",
            extra={"substitution_id": str(substitution_id)}
        )
        return outcome

    def list_substitutions(self, search: Optional[str] = None) -> list[Substitution]:
        """
        Substitution history, newest first.

        search matches (case-insensitively) either trainer's name, the
        ISO date, or the notes.
        """
        substitutions = sorted(
            self._store.list_substitutions(),
            key=lambda s: (s.date, s.created_at),
            reverse=True,
        )

        term = (search or "").strip().casefold()
        if not term:
            return substitutions

        names = self.trainer_names()
        return [s for s in substitutions if _matches(s, term, names)]

    # -----------------------------------------------------------------------
    # Balances
    # -----------------------------------------------------------------------

    def list_balances(self) -> list[Balance]:
        """Active balances, largest debt first."""
        return sorted(self._store.list_balances(), key=lambda b: b.days_owed, reverse=True)

    def balance_between(self, trainer_id: UUID, other_id: UUID) -> int:
        return self._ledger.net_balance(trainer_id, other_id)

    def summary(self) -> LedgerSummary:
        active = self._store.list_balances()
        return LedgerSummary(
            trainer_count=len(self._store.list_trainers()),
            substitution_count=len(self._store.list_substitutions()),
            active_balance_count=len(active),
            total_days_owed=sum(b.days_owed for b in active),
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _require_trainer(self, trainer_id: UUID) -> Trainer:
        trainer = self._store.get_trainer(trainer_id)
        if trainer is None:
            raise TrainerNotFoundError(f"Trainer {trainer_id} not found")
        return trainer


def _build_trainer(name: str) -> Trainer:
    try:
        return Trainer(name=name)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e


def _matches(substitution: Substitution, term: str, names: dict[UUID, str]) -> bool:
    fields = (
        names.get(substitution.absent_trainer_id, ""),
        names.get(substitution.substitute_trainer_id, ""),
        substitution.date.isoformat(),
        substitution.notes or "",
    )
    return any(term in value.casefold() for value in fields)
