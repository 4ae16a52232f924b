"""Daily equity tracker.

An APScheduler interval job scans every active broker account on each tick.
For each account the tracker works out the broker's local time, decides
whether this tick falls in the account's daily sampling window, and if so
fetches the equity through the broker's adapter and records it.

Per-account failures are logged, sent to the notifier, and never stop the
rest of the scan. A failed sample is retried by later ticks in the same
minute only; after that the account waits for the next local day.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from enum import Enum
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from risk_manager.config import BrokerTimeConfig, MAX_CHECK_INTERVAL_SECONDS
from risk_manager.engine.errors import (
    AdapterFetchError,
    ConfigurationMissingError,
    EquityTrackerError,
    PersistenceError,
    RepositoryListError,
    TimezoneResolutionError,
)
from risk_manager.engine.trigger import should_record_equity
from risk_manager.schemas.broker_account import AccountWithLastEquity
from risk_manager.services.broker_adapters import BrokerAdapter
from risk_manager.services.notifications import NotificationSink
from risk_manager.utils.time import Clock, SystemClock

logger = logging.getLogger(__name__)

JOB_ID = "equity_tracker"


class AccountSource(Protocol):
    def list_active_accounts(self) -> list[AccountWithLastEquity]: ...

    def append_sample(self, broker_account_id: int, equity: Decimal): ...


class TrackerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass
class ScanResult:
    checked: int = 0
    recorded: int = 0
    skipped: int = 0
    failed: int = 0


class EquityTracker:
    def __init__(
        self,
        repository: AccountSource,
        broker_configs: dict[str, BrokerTimeConfig],
        notifier: NotificationSink,
        adapters: dict[str, BrokerAdapter],
        check_interval: timedelta,
        clock: Clock | None = None,
        shutdown_grace: float = 2.0,
        log: logging.Logger | None = None,
    ):
        seconds = check_interval.total_seconds()
        if not 0 < seconds <= MAX_CHECK_INTERVAL_SECONDS:
            raise ValueError(
                f"check interval must be between 0 and {MAX_CHECK_INTERVAL_SECONDS}s "
                f"to hit every one-minute trigger window, got {seconds}s"
            )

        self.repository = repository
        self.broker_configs = broker_configs
        self.notifier = notifier
        self.adapters = adapters
        self.check_interval = check_interval
        self.clock = clock or SystemClock()
        self.shutdown_grace = shutdown_grace
        self.log = log or logger

        self._state = TrackerState.IDLE
        self._stop_event = asyncio.Event()
        self._scan_lock = asyncio.Lock()
        self._scan_task: asyncio.Task | None = None
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def state(self) -> TrackerState:
        return self._state

    async def start(self):
        """Run the tracker until stop() is called."""
        if self._state != TrackerState.IDLE:
            raise RuntimeError(f"Equity tracker cannot start from state {self._state.value}")

        self.log.info(f"Starting equity tracker with check interval '{self.check_interval}'")
        self._state = TrackerState.RUNNING

        self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        self._scheduler.add_job(
            self._run_scheduled_scan,
            trigger=IntervalTrigger(seconds=self.check_interval.total_seconds()),
            id=JOB_ID,
            name="Equity tracker",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=max(1, int(self.check_interval.total_seconds())),
        )
        self._scheduler.start()

        try:
            await self._stop_event.wait()
        finally:
            self._state = TrackerState.STOPPING
            # no new ticks; the executor cancels running jobs on shutdown
            self._scheduler.pause()
            await self._wait_for_scan()
            self._scheduler.shutdown(wait=False)
            self._state = TrackerState.STOPPED
            self.log.info("Equity tracker stopped")

    def stop(self):
        """Request shutdown; start() returns once the in-flight scan is done."""
        if self._state in (TrackerState.IDLE, TrackerState.RUNNING):
            self.log.info("Stopping equity tracker")
        self._stop_event.set()

    def status(self) -> dict:
        """Current tracker state for the API."""
        next_run = None
        if self._scheduler is not None and self._scheduler.running:
            job = self._scheduler.get_job(JOB_ID)
            if job and job.next_run_time:
                next_run = job.next_run_time.isoformat()
        return {
            "state": self._state.value,
            "check_interval_seconds": self.check_interval.total_seconds(),
            "next_run": next_run,
            "broker_configs": {k: v.model_dump() for k, v in self.broker_configs.items()},
            "adapters": sorted(self.adapters),
        }

    async def _wait_for_scan(self):
        task = self._scan_task
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self.shutdown_grace)
        except asyncio.TimeoutError:
            self.log.warning(f"In-flight equity scan still running after {self.shutdown_grace}s, cancelling")
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run_scheduled_scan(self):
        """Scheduler job body; never raises into APScheduler."""
        if self._stop_event.is_set():
            return
        self._scan_task = asyncio.current_task()
        try:
            await self.check_and_update_equity()
        except RepositoryListError as e:
            self.log.error(f"Error checking and updating equity: '{e}'")
            await self._notify_error("Error running update equity job", e)
        except Exception as e:
            self.log.error(f"Unexpected error in equity job: {e}", exc_info=True)
            await self._notify_error("Unexpected error running update equity job", e)
        finally:
            self._scan_task = None

    async def check_and_update_equity(self) -> ScanResult:
        """Scan all active accounts once and record equity where due.

        Raises:
            RepositoryListError: Accounts could not be listed; nothing was scanned.
        """
        async with self._scan_lock:
            self.log.info("Running equity check job")
            loop = asyncio.get_running_loop()
            accounts = await loop.run_in_executor(None, self.repository.list_active_accounts)
            self.log.debug(f"Found {len(accounts)} active brokers")

            result = ScanResult()
            for account in accounts:
                result.checked += 1
                try:
                    recorded = await self._process_account(account)
                except EquityTrackerError as e:
                    result.failed += 1
                    await self._report(account, e)
                except Exception as e:
                    result.failed += 1
                    self.log.error(
                        f"Unexpected error updating equity for accountId {account.account_id}: {e}",
                        exc_info=True,
                    )
                    await self._notify_error(
                        f"Unexpected error updating equity for accountId {account.account_id}", e
                    )
                else:
                    if recorded:
                        result.recorded += 1
                    else:
                        result.skipped += 1

            self.log.debug(
                f"Equity check done: checked={result.checked} recorded={result.recorded} "
                f"skipped={result.skipped} failed={result.failed}"
            )
            return result

    async def _process_account(self, account: AccountWithLastEquity) -> bool:
        """Sample one account if it is due. Returns True when a sample was recorded."""
        config = self.broker_configs.get(account.broker_type)
        if config is None:
            raise ConfigurationMissingError(
                f"No configuration found for broker type {account.broker_type} "
                f"[accountId: {account.account_id}]. Skipping."
            )

        adapter = self.adapters.get(account.broker_type)
        if adapter is None:
            raise ConfigurationMissingError(
                f"No adapter found for broker type {account.broker_type} "
                f"[accountId: {account.account_id}]. Skipping."
            )

        try:
            zone = ZoneInfo(config.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise TimezoneResolutionError(
                f"Error loading timezone {config.timezone} for broker type {account.broker_type} "
                f"[accountId: {account.account_id}]: {e}"
            ) from e

        now_local = self.clock.now().astimezone(zone)
        if not should_record_equity(now_local, config, account.last_equity_update):
            self.log.debug(f"Not due for accountId {account.account_id} at {now_local.isoformat()}")
            return False

        self.log.info(f"Updating equity for broker {account.broker_type} [accountId: {account.account_id}]")
        equity = await adapter.get_equity(account.account_id)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.repository.append_sample, account.id, equity)

        self.log.info(f"LastEquity updated for broker {account.broker_type} [accountId: {account.account_id}]: {equity:.2f}")
        return True

    async def _report(self, account: AccountWithLastEquity, error: EquityTrackerError):
        if isinstance(error, AdapterFetchError):
            message = f"Error getting equity for accountId {account.account_id}"
            self.log.error(f"{message}: {error}")
            await self._notify_error(message, error)
        elif isinstance(error, PersistenceError):
            message = (
                f"Error recording equity for accountId {account.account_id}; "
                f"today's sample is lost unless a retry lands in the same minute"
            )
            self.log.error(f"{message}: {error}")
            await self._notify_error(message, error)
        elif isinstance(error, ConfigurationMissingError):
            self.log.warning(str(error))
            await self._notify_error(str(error))
        else:
            self.log.error(str(error))
            await self._notify_error(str(error))

    async def _notify_error(self, message: str, error: BaseException | None = None):
        try:
            await self.notifier.notify_error(message, error)
        except Exception as e:
            self.log.error(f"Error sending notification '{message}': {e}", exc_info=True)
