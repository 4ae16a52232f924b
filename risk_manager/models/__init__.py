"""Database models."""

from risk_manager.models.broker_account import BrokerAccount
from risk_manager.models.equity_snapshot import EquitySnapshot

__all__ = [
    "BrokerAccount",
    "EquitySnapshot",
]
