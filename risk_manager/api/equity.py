"""Equity API — last recorded equity per broker account."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError

from risk_manager.api.deps import get_account_repository, verify_api_key
from risk_manager.schemas.broker_account import EquityResponse
from risk_manager.services.account_repository import AccountRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/equity", tags=["equity"], dependencies=[Depends(verify_api_key)])


@router.get("/latest", response_model=EquityResponse)
def latest_equity(
    account_id: str | None = Query(default=None, alias="accountId"),
    repository: AccountRepository = Depends(get_account_repository),
):
    """Most recent equity value recorded for a trading account.

    Returns 400 without accountId, 404 if the account has no recorded equity.
    """
    if not account_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="accountId parameter is required",
        )

    try:
        snapshot = repository.get_latest_equity(account_id)
    except SQLAlchemyError as e:
        logger.error(f"Error getting latest equity: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No equity data found for broker",
        )

    return EquityResponse(
        account_id=account_id,
        last_equity=snapshot.equity,
        updated_at=snapshot.created_at,
    )
