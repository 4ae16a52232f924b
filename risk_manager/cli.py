"""CLI tool for admin operations.

Usage:
    python -m risk_manager.cli add-account
    python -m risk_manager.cli list-accounts
    python -m risk_manager.cli deactivate-account <account_id>
    python -m risk_manager.cli run-once
    python -m risk_manager.cli serve
"""

import asyncio
import sys
from datetime import timedelta

from pydantic import ValidationError

from risk_manager.config import settings
from risk_manager.database import engine, create_db_and_tables
from risk_manager.schemas.broker_account import BrokerAccountCreate
from risk_manager.services.account_repository import AccountRepository
from risk_manager.utils.logging import setup_logging


def add_account():
    """Register a broker account for daily equity tracking."""
    create_db_and_tables()
    repository = AccountRepository(engine)

    try:
        data = BrokerAccountCreate(
            broker_name=input("Broker name: "),
            broker_type=input("Broker type (OANDA, MT5_FTMO): "),
            broker_env=input("Environment [demo]: ").strip() or "demo",
            account_id=input("Broker account ID: "),
            initial_balance=input("Initial balance [0]: ").strip() or "0",
        )
    except ValidationError as e:
        print(f"Invalid account: {e}")
        sys.exit(1)

    existing = [a for a in repository.list_accounts() if a.account_id == data.account_id]
    if existing:
        print(f"Account '{data.account_id}' already exists.")
        sys.exit(1)

    account = repository.add_account(data)
    print(f"\nAccount '{account.account_id}' ({account.broker_type}) created with id {account.id}.")


def list_accounts():
    create_db_and_tables()
    accounts = AccountRepository(engine).list_accounts()
    if not accounts:
        print("No accounts.")
        return
    for a in accounts:
        state = "active" if a.active else "inactive"
        print(f"{a.id:>4}  {a.broker_type:<9} {a.broker_env:<5} {a.account_id:<24} {state}  {a.broker_name}")


def deactivate_account(account_id: str):
    create_db_and_tables()
    account = AccountRepository(engine).set_account_active(account_id, False)
    if account is None:
        print(f"Account '{account_id}' not found.")
        sys.exit(1)
    print(f"Account '{account_id}' deactivated.")


async def _run_once():
    import httpx

    from risk_manager.engine.equity_tracker import EquityTracker
    from risk_manager.engine.errors import RepositoryListError
    from risk_manager.services.broker_adapters import build_adapters
    from risk_manager.services.notifications import TelegramNotifier

    notifier = TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_ids)
    async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
        tracker = EquityTracker(
            repository=AccountRepository(engine),
            broker_configs=settings.broker_time_configs,
            notifier=notifier,
            adapters=build_adapters(settings.brokers, client),
            check_interval=timedelta(seconds=settings.equity_check_interval),
        )
        try:
            result = await tracker.check_and_update_equity()
        except RepositoryListError as e:
            print(f"Could not list accounts: {e}")
            sys.exit(1)
        finally:
            await notifier.close()

    print(
        f"Checked {result.checked} accounts: {result.recorded} recorded, "
        f"{result.skipped} not due, {result.failed} failed."
    )


def run_once():
    """Run a single equity scan. Accounts are only sampled inside their window."""
    setup_logging()
    create_db_and_tables()
    asyncio.run(_run_once())


def serve():
    import uvicorn

    uvicorn.run("risk_manager.main:app", host="0.0.0.0", port=settings.port)


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m risk_manager.cli <command>")
        print("Commands: add-account, list-accounts, deactivate-account, run-once, serve")
        sys.exit(1)

    command = sys.argv[1]
    if command == "add-account":
        add_account()
    elif command == "list-accounts":
        list_accounts()
    elif command == "deactivate-account":
        if len(sys.argv) < 3:
            print("Usage: python -m risk_manager.cli deactivate-account <account_id>")
            sys.exit(1)
        deactivate_account(sys.argv[2])
    elif command == "run-once":
        run_once()
    elif command == "serve":
        serve()
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
