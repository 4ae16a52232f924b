"""Tests for the SQLModel account repository on in-memory SQLite."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from risk_manager.database import create_db_and_tables
from risk_manager.engine.errors import PersistenceError, RepositoryListError
from risk_manager.models.broker_account import BrokerAccount
from risk_manager.models.equity_snapshot import EquitySnapshot
from risk_manager.schemas.broker_account import BrokerAccountCreate
from risk_manager.services.account_repository import AccountRepository

UTC = timezone.utc


def _memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def engine():
    engine = _memory_engine()
    create_db_and_tables(engine)
    return engine


@pytest.fixture
def repository(engine):
    return AccountRepository(engine)


def _seed(engine):
    with Session(engine) as session:
        oanda = BrokerAccount(broker_name="Oanda demo", broker_type="OANDA", account_id="101-004")
        ftmo = BrokerAccount(broker_name="FTMO 100k", broker_type="MT5_FTMO", account_id="5123456")
        closed = BrokerAccount(broker_name="Old", broker_type="OANDA", account_id="101-999", active=False)
        session.add_all([oanda, ftmo, closed])
        session.commit()
        for account in (oanda, ftmo, closed):
            session.refresh(account)

        session.add_all([
            EquitySnapshot(broker_account_id=oanda.id, equity=Decimal("100.5"),
                           created_at=datetime(2024, 5, 1, 0, 1, tzinfo=UTC)),
            EquitySnapshot(broker_account_id=oanda.id, equity=Decimal("101.25"),
                           created_at=datetime(2024, 5, 2, 0, 1, tzinfo=UTC)),
            EquitySnapshot(broker_account_id=closed.id, equity=Decimal("1"),
                           created_at=datetime(2024, 5, 3, 0, 1, tzinfo=UTC)),
        ])
        session.commit()
        return oanda.id, ftmo.id, closed.id


def test_list_active_accounts_with_last_equity(engine, repository):
    oanda_id, ftmo_id, _ = _seed(engine)

    accounts = repository.list_active_accounts()

    assert [a.id for a in accounts] == [oanda_id, ftmo_id]
    oanda, ftmo = accounts
    assert oanda.last_equity_update == datetime(2024, 5, 2, 0, 1, tzinfo=UTC)
    assert oanda.last_equity_update.tzinfo is not None
    assert ftmo.last_equity_update is None
    assert ftmo.broker_type == "MT5_FTMO"


def test_append_sample_and_latest(engine, repository):
    oanda_id, _, _ = _seed(engine)

    snapshot = repository.append_sample(oanda_id, Decimal("102.1234"))
    assert snapshot.id is not None

    latest = repository.get_latest_equity("101-004")
    assert latest.equity == Decimal("102.1234")
    assert latest.created_at.tzinfo is not None

    accounts = {a.id: a for a in repository.list_active_accounts()}
    assert accounts[oanda_id].last_equity_update > datetime(2024, 5, 2, tzinfo=UTC)


def test_append_sample_rounds_to_column_scale(engine, repository):
    oanda_id, _, _ = _seed(engine)

    snapshot = repository.append_sample(oanda_id, Decimal("102.123456"))
    assert snapshot.equity == Decimal("102.1235")

    latest = repository.get_latest_equity("101-004")
    assert latest.equity == Decimal("102.1235")


def test_latest_equity_unknown_account(engine, repository):
    _seed(engine)
    assert repository.get_latest_equity("nope") is None
    assert repository.get_latest_equity("5123456") is None


def test_list_failure_raises_repository_list_error():
    # No tables created
    repository = AccountRepository(_memory_engine())
    with pytest.raises(RepositoryListError):
        repository.list_active_accounts()


def test_append_failure_raises_persistence_error():
    repository = AccountRepository(_memory_engine())
    with pytest.raises(PersistenceError):
        repository.append_sample(1, Decimal("1"))


def test_add_and_deactivate_account(repository):
    account = repository.add_account(BrokerAccountCreate(
        broker_name=" FTMO 200k ", broker_type="mt5_ftmo", account_id="777", initial_balance="200000",
    ))
    assert account.broker_name == "FTMO 200k"
    assert account.broker_type == "MT5_FTMO"

    assert [a.account_id for a in repository.list_active_accounts()] == ["777"]

    updated = repository.set_account_active("777", False)
    assert updated.active is False
    assert repository.list_active_accounts() == []
    assert repository.set_account_active("missing", False) is None
    assert len(repository.list_accounts()) == 1


def test_create_tables_adds_latest_index(engine):
    from sqlalchemy import inspect

    names = {idx["name"] for idx in inspect(engine).get_indexes("equity_snapshot")}
    assert "ix_equity_snapshot_account_created" in names
