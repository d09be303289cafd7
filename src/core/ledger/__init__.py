"""
Substitution debt ledger.

Contains the domain models, the pure balance rules, the ledger that
applies them against a store, and the service layer on top.
"""

from .errors import (
    BalanceConflictError,
    InvalidInputError,
    LedgerError,
    NotFoundError,
    StorageError,
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
    TrainerPair,
    TrainerRemoval,
)
from .service import SubstitutionService

__all__ = [
    "BalanceConflictError",
    "InvalidInputError",
    "LedgerError",
    "NotFoundError",
    "StorageError",
    "SubstitutionNotFoundError",
    "TrainerNotFoundError",
    "BalanceLedger",
    "LedgerStore",
    "Balance",
    "LedgerSummary",
    "Substitution",
    "SubstitutionOutcome",
    "Trainer",
    "TrainerPair",
    "TrainerRemoval",
    "SubstitutionService",
]
