"""
Retention Periods

Each historical chart window kept per coin is described by one RetentionPeriod:
how many days of provider history seed it at bootstrap, how many points it may
hold, and how many refresh ticks must pass between locally appended points.

With the default 5 minute tick the cadences work out to:
    24h -> every tick (5 minutes)
    7d  -> every 12 ticks (hourly)
    2w  -> every 48 ticks (4 hours)
    1m, 3m, 6m -> every 288 ticks (daily)
    1y  -> every 2016 ticks (weekly)
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class RetentionPeriod:
    """
    A named historical window.

    Attributes:
        name: Period key used in the historical map (e.g. "7d")
        days: Day-count window requested from the market chart endpoint
        capacity: Maximum number of points kept (FIFO eviction beyond it)
        cadence: Append a point only on ticks where tick % cadence == 0
    """

    name: str
    days: int
    capacity: int
    cadence: int

    def is_due(self, tick: int) -> bool:
        """True if a point should be appended on this tick number."""
        return tick % self.cadence == 0


RETENTION_PERIODS: Tuple[RetentionPeriod, ...] = (
    RetentionPeriod(name="24h", days=1, capacity=288, cadence=1),
    RetentionPeriod(name="7d", days=7, capacity=168, cadence=12),
    RetentionPeriod(name="2w", days=14, capacity=84, cadence=48),
    RetentionPeriod(name="1m", days=30, capacity=30, cadence=288),
    RetentionPeriod(name="3m", days=90, capacity=90, cadence=288),
    RetentionPeriod(name="6m", days=180, capacity=180, cadence=288),
    RetentionPeriod(name="1y", days=365, capacity=52, cadence=2016),
)

PERIODS_BY_NAME: Dict[str, RetentionPeriod] = {p.name: p for p in RETENTION_PERIODS}

PERIOD_NAMES: List[str] = [p.name for p in RETENTION_PERIODS]


def get_period(name: str) -> RetentionPeriod:
    """
    Look up a retention period by name.

    Raises:
        ValueError: If the name is not one of PERIOD_NAMES
    """
    try:
        return PERIODS_BY_NAME[name]
    except KeyError:
        raise ValueError(
            f"Unknown retention period '{name}'. Must be one of: {', '.join(PERIOD_NAMES)}"
        )


def periods_due(tick: int) -> List[RetentionPeriod]:
    """Return the periods whose cadence gate opens on the given tick."""
    return [p for p in RETENTION_PERIODS if p.is_due(tick)]
