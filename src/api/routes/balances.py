"""
Balance endpoints.

Read-only views of the ledger: every active balance, the net between
two specific trainers, and the dashboard counts.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from ..dependencies import AuthenticatedUser, SubstitutionServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------

class BalanceItem(BaseModel):
    """debtor_id owes creditor_id days_owed days."""
    debtor_id: UUID
    debtor_name: Optional[str] = None
    creditor_id: UUID
    creditor_name: Optional[str] = None
    days_owed: int = Field(ge=1)


class BalanceListResponse(BaseModel):
    balances: list[BalanceItem] = Field(description="Largest debt first")
    total: int


class NetBalanceResponse(BaseModel):
    """
    Net days between two trainers, from trainer_id's side.

    Positive: trainer_id owes other_id. Negative: other_id owes
    trainer_id. Zero: even.
    """
    trainer_id: UUID
    other_id: UUID
    net_days: int


class SummaryResponse(BaseModel):
    """Dashboard headline numbers."""
    trainer_count: int
    substitution_count: int
    active_balance_count: int
    total_days_owed: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=BalanceListResponse,
    summary="Active balances",
)
def list_balances(
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
) -> BalanceListResponse:
    names = service.trainer_names()
    items = [
        BalanceItem(
            debtor_id=b.debtor_id,
            debtor_name=names.get(b.debtor_id),
            creditor_id=b.creditor_id,
            creditor_name=names.get(b.creditor_id),
            days_owed=b.days_owed,
        )
        for b in service.list_balances()
    ]
    return BalanceListResponse(balances=items, total=len(items))


@router.get(
    "/between",
    response_model=NetBalanceResponse,
    summary="Net balance between two trainers",
)
def balance_between(
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
    trainer_id: UUID = Query(description="Trainer whose side the sign is reported from"),
    other_id: UUID = Query(description="The other trainer"),
) -> NetBalanceResponse:
    return NetBalanceResponse(
        trainer_id=trainer_id,
        other_id=other_id,
        net_days=service.balance_between(trainer_id, other_id),
    )


@router.get(
    "/summary",
    response_model=SummaryResponse,
    summary="Dashboard summary",
)
def summary(
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
) -> SummaryResponse:
    result = service.summary()
    return SummaryResponse(
        trainer_count=result.trainer_count,
        substitution_count=result.substitution_count,
        active_balance_count=result.active_balance_count,
        total_days_owed=result.total_days_owed,
    )
