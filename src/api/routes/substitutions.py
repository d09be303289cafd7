"""
Substitution endpoints.

Recording a substitution puts one day of debt on the absent trainer;
deleting it takes that day back off. Both responses include the pair's
balance after the change so the UI doesn't need a second round trip.
"""

import datetime as dt
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from ...core.ledger.balances import net_balance
from ...core.ledger.models import Balance, Substitution, SubstitutionOutcome
from ..dependencies import AuthenticatedUser, SubstitutionServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SubstitutionRequest(BaseModel):
    """Request to record a substitution."""
    absent_trainer_id: UUID = Field(description="Trainer who was absent")
    substitute_trainer_id: UUID = Field(description="Trainer who covered")
    date: dt.date = Field(description="Day of the substitution")
    notes: Optional[str] = Field(None, max_length=1000, description="Free-form notes")


class SubstitutionResponse(BaseModel):
    """A recorded substitution."""
    substitution_id: UUID
    date: dt.date
    absent_trainer_id: UUID
    absent_trainer_name: Optional[str] = None
    substitute_trainer_id: UUID
    substitute_trainer_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: dt.datetime

    @classmethod
    def from_substitution(
        cls,
        substitution: Substitution,
        names: Optional[dict[UUID, str]] = None,
    ) -> "SubstitutionResponse":
        names = names or {}
        return cls(
            substitution_id=substitution.id,
            date=substitution.date,
            absent_trainer_id=substitution.absent_trainer_id,
            absent_trainer_name=names.get(substitution.absent_trainer_id),
            substitute_trainer_id=substitution.substitute_trainer_id,
            substitute_trainer_name=names.get(substitution.substitute_trainer_id),
            notes=substitution.notes,
            created_at=substitution.created_at,
        )


class PairBalance(BaseModel):
    """
    The balance between the two trainers of a substitution.

    net_days is from the absent trainer's side: positive means they owe
    the substitute, negative means the substitute owes them, zero even.
    """
    debtor_id: Optional[UUID] = None
    creditor_id: Optional[UUID] = None
    days_owed: int = 0
    net_days: int = 0


class SubstitutionOutcomeResponse(BaseModel):
    substitution: SubstitutionResponse
    balance: PairBalance

    @classmethod
    def from_outcome(
        cls,
        outcome: SubstitutionOutcome,
        names: Optional[dict[UUID, str]] = None,
    ) -> "SubstitutionOutcomeResponse":
        substitution = outcome.substitution
        return cls(
            substitution=SubstitutionResponse.from_substitution(substitution, names),
            balance=_pair_balance(
                outcome.balance,
                substitution.absent_trainer_id,
                substitution.substitute_trainer_id,
            ),
        )


class SubstitutionListResponse(BaseModel):
    substitutions: list[SubstitutionResponse] = Field(description="Newest first")
    total: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=SubstitutionListResponse,
    summary="Substitution history",
    description="List substitutions, newest first, optionally filtered by a search term",
)
def list_substitutions(
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
    search: Optional[str] = Query(None, max_length=200, description="Matches trainer names, date or notes"),
) -> SubstitutionListResponse:
    names = service.trainer_names()
    substitutions = [
        SubstitutionResponse.from_substitution(s, names)
        for s in service.list_substitutions(search=search)
    ]
    return SubstitutionListResponse(substitutions=substitutions, total=len(substitutions))


@router.post(
    "",
    response_model=SubstitutionOutcomeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a substitution",
)
def record_substitution(
    request: SubstitutionRequest,
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
) -> SubstitutionOutcomeResponse:
    outcome = service.record_substitution(
        request.absent_trainer_id,
        request.substitute_trainer_id,
        request.date,
        notes=request.notes,
    )
    return SubstitutionOutcomeResponse.from_outcome(outcome, service.trainer_names())


@router.delete(
    "/{substitution_id}",
    response_model=SubstitutionOutcomeResponse,
    summary="Delete a substitution",
    description="Delete a substitution and reverse its effect on the trainers' balance",
)
def remove_substitution(
    substitution_id: UUID,
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
) -> SubstitutionOutcomeResponse:
    outcome = service.remove_substitution(substitution_id)
    return SubstitutionOutcomeResponse.from_outcome(outcome, service.trainer_names())


def _pair_balance(balance: Optional[Balance], absent_id: UUID, substitute_id: UUID) -> PairBalance:
    if balance is None:
        return PairBalance()
    return PairBalance(
        debtor_id=balance.debtor_id,
        creditor_id=balance.creditor_id,
        days_owed=balance.days_owed,
        net_days=net_balance(balance, absent_id, substitute_id),
    )
