from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from .config import LegacyGuardConfig, default_timeout_options

SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

# Months and years are fixed approximations, not calendar-exact
UNIT_MILLISECONDS = {
    "second": SECOND_MS,
    "seconds": SECOND_MS,
    "minute": MINUTE_MS,
    "minutes": MINUTE_MS,
    "hour": HOUR_MS,
    "hours": HOUR_MS,
    "day": DAY_MS,
    "days": DAY_MS,
    "week": 7 * DAY_MS,
    "weeks": 7 * DAY_MS,
    "month": 30 * DAY_MS,
    "months": 30 * DAY_MS,
    "year": 365 * DAY_MS,
    "years": 365 * DAY_MS,
}


@dataclass
class TimeoutPolicy:
    """Inactivity timeout rules for the vault"""

    timeout_options: Dict[str, int] = field(default_factory=default_timeout_options)
    default_timeout_blocks: int = 52_000

    @classmethod
    def from_config(cls, config: LegacyGuardConfig) -> 'TimeoutPolicy':
        return cls(
            timeout_options=dict(config.timeout_options),
            default_timeout_blocks=config.default_timeout_blocks,
        )

    def timeout_blocks(self, selector: Optional[str]) -> int:
        """Block count for the on-chain contract; unknown selectors use the default"""
        if not selector:
            return self.default_timeout_blocks
        return self.timeout_options.get(selector, self.default_timeout_blocks)

    @staticmethod
    def timeout_milliseconds(selector: Optional[str]) -> int:
        """
        Parse "<value>-<unit>" (e.g. "60-seconds", "6-months") to milliseconds.

        Anything unparseable yields 0, which callers must read as "never elapses".
        """
        if not selector:
            return 0

        value, _, unit = selector.strip().lower().partition("-")
        try:
            amount = int(value)
        except ValueError:
            return 0

        return amount * UNIT_MILLISECONDS.get(unit, 0)

    def has_elapsed(self, selector: Optional[str], created_at: datetime, now: datetime) -> bool:
        """Check if the inactivity timeout has passed since created_at"""
        timeout_ms = self.timeout_milliseconds(selector)
        if timeout_ms <= 0:
            return False

        elapsed_ms = (now - created_at).total_seconds() * 1000
        return elapsed_ms >= timeout_ms

    def remaining_milliseconds(self, selector: Optional[str], created_at: datetime, now: datetime) -> Optional[int]:
        """Milliseconds until the timeout elapses, or None if it never does"""
        timeout_ms = self.timeout_milliseconds(selector)
        if timeout_ms <= 0:
            return None

        elapsed_ms = int((now - created_at).total_seconds() * 1000)
        return max(0, timeout_ms - elapsed_ms)

    @staticmethod
    def estimated_days(blocks: int) -> float:
        """Rough wall-clock length of a block count at ~10 minutes per block"""
        return round(blocks * 10 / 60 / 24, 1)
