"""FastAPI application entry point.

Serves the equity read API and runs the equity tracker in the background
on the same event loop.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
from fastapi import FastAPI

from risk_manager.config import settings
from risk_manager.database import create_db_and_tables, engine
from risk_manager.utils.logging import setup_logging
from risk_manager.api import equity, system

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables()

    from risk_manager.engine.equity_tracker import EquityTracker
    from risk_manager.services.account_repository import AccountRepository
    from risk_manager.services.broker_adapters import build_adapters
    from risk_manager.services.notifications import TelegramNotifier

    http_client = httpx.AsyncClient(timeout=settings.http_timeout)
    notifier = TelegramNotifier(settings.telegram_bot_token, settings.telegram_chat_ids)
    tracker = EquityTracker(
        repository=AccountRepository(engine),
        broker_configs=settings.broker_time_configs,
        notifier=notifier,
        adapters=build_adapters(settings.brokers, http_client),
        check_interval=timedelta(seconds=settings.equity_check_interval),
        shutdown_grace=settings.shutdown_grace,
    )
    app.state.tracker = tracker

    tracker_task = asyncio.create_task(tracker.start())

    def _on_tracker_exit(task: asyncio.Task):
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Equity tracker exited with error: {task.exception()}")

    tracker_task.add_done_callback(_on_tracker_exit)

    yield

    logger.info("Initiating graceful shutdown...")
    tracker.stop()
    try:
        await asyncio.wait_for(tracker_task, timeout=settings.shutdown_grace + 1)
    except asyncio.TimeoutError:
        logger.error("Equity tracker did not stop in time")
    await notifier.close()
    await http_client.aclose()
    logger.info("Service stopped")


app = FastAPI(
    title="Risk Manager",
    description="Daily broker equity tracking with a read API",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(system.router)
app.include_router(equity.router)
