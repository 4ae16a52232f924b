"""Pydantic schemas for broker accounts and recorded equity."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


class BrokerAccountCreate(BaseModel):
    broker_name: str = Field(min_length=1, max_length=120)
    broker_type: str
    broker_env: str = "demo"
    account_id: str = Field(min_length=1, max_length=120)
    initial_balance: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("broker_name", "account_id")
    @classmethod
    def _trim(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text

    @field_validator("broker_type")
    @classmethod
    def _validate_broker_type(cls, value: str) -> str:
        from risk_manager.services.broker_adapters import BrokerType

        tag = value.strip().upper()
        if tag not in {b.value for b in BrokerType}:
            raise ValueError(f"unsupported broker type: {value}")
        return tag


class AccountWithLastEquity(BaseModel):
    """Active account as seen by the tracker on one tick."""

    id: int
    broker_name: str
    broker_type: str
    broker_env: str
    account_id: str
    active: bool
    initial_balance: Decimal
    created_at: datetime
    updated_at: datetime
    # UTC; must be converted to the broker's timezone before comparing dates
    last_equity_update: datetime | None = None

    model_config = {"from_attributes": True, "frozen": True}


class EquityResponse(BaseModel):
    account_id: str = Field(alias="accountId")
    last_equity: Decimal = Field(alias="lastEquity")
    # Last time the equity was recorded, in UTC
    updated_at: datetime = Field(alias="updatedAt")

    model_config = {"populate_by_name": True}
