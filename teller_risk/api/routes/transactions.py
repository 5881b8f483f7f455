"""Transaction ingestion and query routes."""

from typing import Any

from fastapi import APIRouter, Depends, Query

from teller_risk.core.dependencies import CurrentUser, PipelineDep, SettingsDep, UnitOfWorkDep
from teller_risk.domain.models.transaction import TransactionStatus
from teller_risk.schemas.transaction import (
    IngestionResponse,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
)
from teller_risk.services.ingestion_service import IngestionService
from teller_risk.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["transactions"])


def get_ingestion_service(
    uow: UnitOfWorkDep, pipeline: PipelineDep, settings: SettingsDep
) -> IngestionService:
    """Get ingestion service instance."""
    return IngestionService(uow, pipeline, settings.store)


def get_transaction_service(uow: UnitOfWorkDep) -> TransactionService:
    """Get transaction service instance."""
    return TransactionService(uow)


@router.post("", response_model=IngestionResponse, status_code=201)
async def create_transaction(
    request: TransactionCreate,
    current_user: CurrentUser,
    service: IngestionService = Depends(get_ingestion_service),
) -> dict[str, Any]:
    """Score and record a teller transaction.

    Transactions scoring at or above the hold threshold are held for
    branch manager approval.
    """
    return await service.create_transaction(request.model_dump(), current_user)


@router.get("", response_model=TransactionListResponse)
async def list_transactions(
    current_user: CurrentUser,
    member_id: str | None = None,
    status: TransactionStatus | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    service: TransactionService = Depends(get_transaction_service),
) -> dict[str, Any]:
    """List transactions, newest first."""
    return await service.list_transactions(
        current_user,
        member_id=member_id,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: str,
    current_user: CurrentUser,
    service: TransactionService = Depends(get_transaction_service),
) -> dict[str, Any]:
    """Get a transaction by its business ID."""
    return await service.get_transaction(transaction_id, current_user)
