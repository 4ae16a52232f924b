"""Time source abstraction.

The trigger decision is time critical, so the tracker never reads the wall
clock directly; it asks an injected Clock.
"""

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware datetime."""
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)
