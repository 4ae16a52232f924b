"""BrokerAccount model — an external broker account under equity surveillance."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


class BrokerAccount(SQLModel, table=True):
    __tablename__ = "broker_account"

    id: int | None = Field(default=None, primary_key=True)
    broker_name: str  # e.g. "FTMO Challenge 100k"
    broker_type: str = Field(index=True)  # "OANDA", "MT5_FTMO"
    broker_env: str = "demo"  # "demo", "live"
    account_id: str = Field(unique=True, index=True)  # Broker-side account identifier
    active: bool = True
    initial_balance: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=4)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
