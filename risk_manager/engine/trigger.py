"""Trigger decision: is this tick the moment to sample an account's equity?

A broker type is sampled once per local calendar day, inside the single
minute that starts at its configured time. The scheduler ticks at a fixed
interval of at most 60 seconds, so at least one tick lands in every window;
the last recorded sample prevents a second write later in the same minute
or after a restart.
"""

from datetime import datetime

from risk_manager.config import BrokerTimeConfig


def is_update_time(now_local: datetime, target_hour: int, target_minute: int) -> bool:
    """True when now_local falls inside the one-minute window at the target time."""
    return (
        now_local.hour == target_hour
        and target_minute <= now_local.minute < target_minute + 1
    )


def is_same_day(a: datetime, b: datetime) -> bool:
    return (a.year, a.month, a.day) == (b.year, b.month, b.day)


def should_record_equity(
    now_local: datetime,
    config: BrokerTimeConfig,
    last_update: datetime | None,
) -> bool:
    """Decide whether an account should be sampled on this tick.

    Args:
        now_local: Current instant, already converted to the broker timezone.
        config: The broker type's daily sampling time.
        last_update: UTC instant of the most recent sample, or None if the
            account has never been sampled.
    """
    if not is_update_time(now_local, config.daily_update_hour, config.daily_update_minute):
        return False

    # Cold start: nothing recorded yet
    if last_update is None:
        return True

    return not is_same_day(now_local, last_update.astimezone(now_local.tzinfo))
