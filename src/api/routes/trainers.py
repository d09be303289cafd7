"""
Trainer registry endpoints.

Add, rename, list and remove trainers. Removing a trainer cascades to
every substitution and balance that names them.
"""

import logging
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.ledger.models import Trainer
from ..dependencies import AuthenticatedUser, SubstitutionServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class TrainerRequest(BaseModel):
    """Request to create or rename a trainer."""
    name: str = Field(
        description="Trainer display name",
        min_length=1,
        max_length=200,
    )


class TrainerResponse(BaseModel):
    """A trainer."""
    trainer_id: UUID = Field(description="Trainer identifier")
    name: str = Field(description="Display name")
    created_at: datetime = Field(description="When the trainer was added")
    updated_at: datetime = Field(description="Last rename")

    @classmethod
    def from_trainer(cls, trainer: Trainer) -> "TrainerResponse":
        return cls(
            trainer_id=trainer.id,
            name=trainer.name,
            created_at=trainer.created_at,
            updated_at=trainer.updated_at,
        )


class TrainerListResponse(BaseModel):
    trainers: list[TrainerResponse] = Field(description="Trainers sorted by name")
    total: int = Field(description="Number of trainers")


class TrainerRemovalResponse(BaseModel):
    """What was deleted along with the trainer."""
    trainer_id: UUID
    substitutions_removed: int = Field(description="Substitutions naming the trainer in either role")
    balances_removed: int = Field(description="Balances naming the trainer in either role")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=TrainerListResponse,
    summary="List trainers",
)
def list_trainers(
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
) -> TrainerListResponse:
    trainers = [TrainerResponse.from_trainer(t) for t in service.list_trainers()]
    return TrainerListResponse(trainers=trainers, total=len(trainers))


@router.post(
    "",
    response_model=TrainerResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a trainer",
)
def add_trainer(
    request: TrainerRequest,
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
) -> TrainerResponse:
    trainer = service.add_trainer(request.name)
    return TrainerResponse.from_trainer(trainer)


@router.patch(
    "/{trainer_id}",
    response_model=TrainerResponse,
    summary="Rename a trainer",
)
def rename_trainer(
    trainer_id: UUID,
    request: TrainerRequest,
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
) -> TrainerResponse:
    trainer = service.rename_trainer(trainer_id, request.name)
    return TrainerResponse.from_trainer(trainer)


@router.delete(
    "/{trainer_id}",
    response_model=TrainerRemovalResponse,
    summary="Remove a trainer",
    description="Delete a trainer along with all of their substitutions and balances",
)
def remove_trainer(
    trainer_id: UUID,
    api_key: AuthenticatedUser,
    service: SubstitutionServiceDep,
) -> TrainerRemovalResponse:
    logger.info(
        "Trainer removal requested",
        extra={"trainer_id": str(trainer_id)}
    )

    removal = service.remove_trainer(trainer_id)
    return TrainerRemovalResponse(
        trainer_id=removal.trainer.id,
        substitutions_removed=removal.substitutions_removed,
        balances_removed=removal.balances_removed,
    )
