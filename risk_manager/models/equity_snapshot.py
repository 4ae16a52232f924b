"""EquitySnapshot model — one recorded equity sample per account per local day."""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


# NUMERIC(20, 4): samples are rounded half-even to four decimal places on insert
EQUITY_QUANTUM = Decimal("0.0001")


class EquitySnapshot(SQLModel, table=True):
    __tablename__ = "equity_snapshot"

    id: int | None = Field(default=None, primary_key=True)
    broker_account_id: int = Field(foreign_key="broker_account.id", index=True)
    equity: Decimal = Field(max_digits=20, decimal_places=4)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),
    )
