"""
Domain models for the substitution ledger.

These models represent the core business concepts: trainers, the
substitutions between them, and the day-debts those substitutions create.
They have no dependencies on storage or HTTP; a balance is a balance
whether it lives in Snowflake or a JSON file.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID, uuid4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Trainer:
    """
    A gym trainer.

    The ledger only ever sees trainer IDs; the name is for display.
    """
    id: UUID = field(default_factory=uuid4)
    name: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.name = self.name.strip()
        if not self.name:
            raise ValueError("Trainer name cannot be empty")

    def rename(self, name: str) -> None:
        """Change the display name and bump updated_at."""
        name = name.strip()
        if not name:
            raise ValueError("Trainer name cannot be empty")
        self.name = name
        self.updated_at = utcnow()


@dataclass(frozen=True)
class TrainerPair:
    """
    An unordered pair of distinct trainers.

    Frozen and canonically ordered so that TrainerPair.of(a, b) and
    TrainerPair.of(b, a) are the same value. This is the key under
    which at most one balance is stored.
    """
    first: UUID
    second: UUID

    def __post_init__(self) -> None:
        if self.first == self.second:
            raise ValueError("A trainer pair needs two different trainers")
        if str(self.first) > str(self.second):
            raise ValueError("Use TrainerPair.of() to build a pair")

    @classmethod
    def of(cls, trainer_id: UUID, other_id: UUID) -> "TrainerPair":
        if str(trainer_id) <= str(other_id):
            return cls(first=trainer_id, second=other_id)
        return cls(first=other_id, second=trainer_id)

    @property
    def key(self) -> str:
        """Stable string form, used as the unique storage key."""
        return f"{self.first}:{self.second}"

    def __contains__(self, trainer_id: object) -> bool:
        return trainer_id == self.first or trainer_id == self.second


@dataclass(frozen=True)
class Substitution:
    """
    One substitution event: substitute_trainer_id covered for absent_trainer_id.

    Immutable once created. The app never edits a substitution; it
    records a new one or deletes an old one.
    """
    absent_trainer_id: UUID
    substitute_trainer_id: UUID
    date: date
    notes: Optional[str] = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.absent_trainer_id == self.substitute_trainer_id:
            raise ValueError("A trainer cannot substitute for themselves")

    @property
    def pair(self) -> TrainerPair:
        return TrainerPair.of(self.absent_trainer_id, self.substitute_trainer_id)

    def involves(self, trainer_id: UUID) -> bool:
        return trainer_id in (self.absent_trainer_id, self.substitute_trainer_id)


@dataclass(frozen=True)
class Balance:
    """
    A directed day-debt: debtor_id owes creditor_id days_owed days.

    A zero balance is never represented; the pair simply has no
    Balance. Values, not entities: the ledger replaces rather than
    mutates them.
    """
    debtor_id: UUID
    creditor_id: UUID
    days_owed: int = 1

    def __post_init__(self) -> None:
        if self.debtor_id == self.creditor_id:
            raise ValueError("Debtor and creditor must be different trainers")
        if self.days_owed < 1:
            raise ValueError("days_owed must be at least 1")

    @property
    def pair(self) -> TrainerPair:
        return TrainerPair.of(self.debtor_id, self.creditor_id)

    def involves(self, trainer_id: UUID) -> bool:
        return trainer_id in (self.debtor_id, self.creditor_id)

    def signed_for(self, trainer_id: UUID) -> int:
        """Days owed from trainer_id's side: positive if they are the debtor."""
        if trainer_id == self.debtor_id:
            return self.days_owed
        if trainer_id == self.creditor_id:
            return -self.days_owed
        raise ValueError(f"Trainer {trainer_id} is not part of this balance")


@dataclass
class TrainerRemoval:
    """What a cascading trainer removal deleted."""
    trainer: Trainer
    substitutions_removed: int = 0
    balances_removed: int = 0


@dataclass
class SubstitutionOutcome:
    """A substitution together with its pair's balance after the change."""
    substitution: Substitution
    balance: Optional[Balance] = None


@dataclass
class LedgerSummary:
    """Headline counts for the dashboard."""
    trainer_count: int = 0
    substitution_count: int = 0
    active_balance_count: int = 0
    total_days_owed: int = 0
