"""
Exceptions raised by the substitution ledger.

The hierarchy mirrors how callers react:
- InvalidInputError: the request itself is wrong, don't retry
- NotFoundError: something referenced doesn't exist
- StorageError: the backing store failed, retry the whole operation
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""
    pass


class InvalidInputError(LedgerError):
    """Raised when a request violates a precondition (e.g. self-substitution)."""
    pass


class NotFoundError(LedgerError):
    """Raised when a referenced record doesn't exist."""
    pass


class TrainerNotFoundError(NotFoundError):
    """Raised when a trainer ID isn't in the registry."""
    pass


class SubstitutionNotFoundError(NotFoundError):
    """Raised when a substitution ID isn't recorded."""
    pass


class StorageError(LedgerError):
    """Raised when the backing store fails during an operation."""
    pass


class BalanceConflictError(StorageError):
    """
    Raised when a balance changed between read and write.

    The stored value no longer matches what the ledger decided from,
    so the decision is stale and the operation has to start over.
    """
    pass
