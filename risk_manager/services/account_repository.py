"""Account repository — broker accounts and their recorded equity.

All methods open their own short-lived Session, so one repository can be
shared by the tracker, the API and the CLI.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, func

from risk_manager.engine.errors import PersistenceError, RepositoryListError
from risk_manager.models.broker_account import BrokerAccount
from risk_manager.models.equity_snapshot import EQUITY_QUANTUM, EquitySnapshot
from risk_manager.schemas.broker_account import AccountWithLastEquity, BrokerAccountCreate

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AccountRepository:
    def __init__(self, engine: Engine):
        self.engine = engine

    def list_active_accounts(self) -> list[AccountWithLastEquity]:
        """Active accounts with the time their equity was last recorded."""
        last_equity = (
            select(
                EquitySnapshot.broker_account_id,
                func.max(EquitySnapshot.created_at).label("last_equity_update"),
            )
            .group_by(EquitySnapshot.broker_account_id)
            .subquery()
        )
        stmt = (
            select(BrokerAccount, last_equity.c.last_equity_update)
            .outerjoin(last_equity, BrokerAccount.id == last_equity.c.broker_account_id)
            .where(BrokerAccount.active == True)  # noqa: E712
            .order_by(BrokerAccount.id)
        )

        try:
            with Session(self.engine) as session:
                rows = session.exec(stmt).all()
        except SQLAlchemyError as e:
            raise RepositoryListError(f"error getting all active brokers: {e}") from e

        return [
            AccountWithLastEquity(
                id=account.id,
                broker_name=account.broker_name,
                broker_type=account.broker_type,
                broker_env=account.broker_env,
                account_id=account.account_id,
                active=account.active,
                initial_balance=account.initial_balance,
                created_at=_as_utc(account.created_at),
                updated_at=_as_utc(account.updated_at),
                last_equity_update=_as_utc(last_update),
            )
            for account, last_update in rows
        ]

    def append_sample(self, broker_account_id: int, equity: Decimal) -> EquitySnapshot:
        """Record one equity sample. One call is one fact; samples are never updated."""
        stored = equity.quantize(EQUITY_QUANTUM)
        if stored != equity:
            logger.debug(f"Rounding equity {equity} to {stored} for account {broker_account_id}")
        snapshot = EquitySnapshot(broker_account_id=broker_account_id, equity=stored)
        try:
            with Session(self.engine) as session:
                session.add(snapshot)
                session.commit()
                session.refresh(snapshot)
        except SQLAlchemyError as e:
            raise PersistenceError(f"error recording equity for account {broker_account_id}: {e}") from e
        return snapshot

    def get_latest_equity(self, account_id: str) -> EquitySnapshot | None:
        """Most recent sample for a broker-side account id, or None if none exists."""
        stmt = (
            select(EquitySnapshot)
            .join(BrokerAccount, EquitySnapshot.broker_account_id == BrokerAccount.id)
            .where(BrokerAccount.account_id == account_id)
            .order_by(EquitySnapshot.created_at.desc(), EquitySnapshot.id.desc())
            .limit(1)
        )
        with Session(self.engine) as session:
            snapshot = session.exec(stmt).first()
        if snapshot is not None:
            snapshot.created_at = _as_utc(snapshot.created_at)
        return snapshot

    # ------------------------------------------------------------------
    # Account administration (CLI)
    # ------------------------------------------------------------------

    def add_account(self, data: BrokerAccountCreate) -> BrokerAccount:
        account = BrokerAccount(**data.model_dump())
        with Session(self.engine) as session:
            session.add(account)
            session.commit()
            session.refresh(account)
        logger.info(f"Added {account.broker_type} account {account.account_id} (id={account.id})")
        return account

    def list_accounts(self) -> list[BrokerAccount]:
        with Session(self.engine) as session:
            return list(session.exec(select(BrokerAccount).order_by(BrokerAccount.id)).all())

    def set_account_active(self, account_id: str, active: bool) -> BrokerAccount | None:
        with Session(self.engine) as session:
            account = session.exec(
                select(BrokerAccount).where(BrokerAccount.account_id == account_id)
            ).first()
            if account is None:
                return None
            account.active = active
            account.updated_at = datetime.now(timezone.utc)
            session.add(account)
            session.commit()
            session.refresh(account)
        return account
