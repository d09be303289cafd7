"""
Balance rules for substitutions between two trainers.

These are pure functions: given the balance currently stored for a pair
(or None when the pair is even) and one substitution event, they return
the balance that should be stored afterwards (or None to delete it).
Storage, locking and retries live in BalanceLedger; nothing here does I/O.

In signed terms every rule is a single step:
- apply:  net(absent, substitute) += 1
- revert: net(absent, substitute) -= 1
so revert_substitution(apply_substitution(b, x, y), x, y) == b for any b.
"""

from dataclasses import replace
from typing import Optional
from uuid import UUID

from .models import Balance, TrainerPair


def apply_substitution(
    balance: Optional[Balance],
    absent_id: UUID,
    substitute_id: UUID,
) -> Optional[Balance]:
    """
    Add one day of debt from absent_id to substitute_id.

    - No balance: absent now owes substitute one day.
    - Absent already owes substitute: the debt grows by a day.
    - Substitute owes absent: the debt shrinks by a day. At exactly one
      day the pair becomes even and the balance is deleted; it does not
      flip over to the other direction.

    Caller guarantees absent_id != substitute_id.
    """
    if balance is None:
        return Balance(debtor_id=absent_id, creditor_id=substitute_id, days_owed=1)

    _check_pair(balance, absent_id, substitute_id)

    if balance.debtor_id == absent_id:
        return replace(balance, days_owed=balance.days_owed + 1)

    if balance.days_owed > 1:
        return replace(balance, days_owed=balance.days_owed - 1)

    return None


def revert_substitution(
    balance: Optional[Balance],
    absent_id: UUID,
    substitute_id: UUID,
) -> Optional[Balance]:
    """
    Remove one day of debt from absent_id to substitute_id.

    Used when a recorded substitution is deleted.

    - Absent owes substitute: the debt shrinks by a day, deleted at zero.
    - Substitute owes absent: the debt grows by a day.
    - No balance: the pair was even only because of the event being
      removed, so substitute now owes absent one day.

    Caller guarantees absent_id != substitute_id.
    """
    if balance is None:
        return Balance(debtor_id=substitute_id, creditor_id=absent_id, days_owed=1)

    _check_pair(balance, absent_id, substitute_id)

    if balance.debtor_id == absent_id:
        if balance.days_owed > 1:
            return replace(balance, days_owed=balance.days_owed - 1)
        return None

    return replace(balance, days_owed=balance.days_owed + 1)


def net_balance(
    balance: Optional[Balance],
    trainer_id: UUID,
    other_id: UUID,
) -> int:
    """
    Signed days owed between two trainers.

    Positive when trainer_id owes other_id, negative when other_id owes
    trainer_id, zero when there is no balance.
    """
    if balance is None:
        return 0
    _check_pair(balance, trainer_id, other_id)
    return balance.signed_for(trainer_id)


def balance_from_net(net: int, trainer_id: UUID, other_id: UUID) -> Optional[Balance]:
    """Inverse of net_balance: the stored form of a signed day count."""
    if net > 0:
        return Balance(debtor_id=trainer_id, creditor_id=other_id, days_owed=net)
    if net < 0:
        return Balance(debtor_id=other_id, creditor_id=trainer_id, days_owed=-net)
    return None


def _check_pair(balance: Balance, trainer_id: UUID, other_id: UUID) -> None:
    if balance.pair != TrainerPair.of(trainer_id, other_id):
        raise ValueError(
            f"Balance {balance.debtor_id}->{balance.creditor_id} "
            f"does not belong to pair {trainer_id}/{other_id}"
        )
