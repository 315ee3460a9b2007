"""
Configuration for ASG instance refresh runs.
"""

from dataclasses import dataclass
from typing import Optional

from .keys import DEFAULT_MIN_HEALTHY_PERCENTAGE

DEFAULT_POLL_INTERVAL = 60
DEFAULT_RECENT_WINDOW = 30 * 60


@dataclass
class RefreshConfig:
    """Tunables for a refresh run.

    Attributes:
        min_healthy_percentage: Lower bound of healthy instances during a refresh
        poll_interval: Fixed delay between status lookups (seconds)
        recent_window: Groups whose last refresh ended within this many
            seconds are skipped
        max_wait: Upper bound on waiting for one group (seconds); None waits
            until AWS reports a terminal status
    """

    min_healthy_percentage: int = DEFAULT_MIN_HEALTHY_PERCENTAGE
    poll_interval: int = DEFAULT_POLL_INTERVAL
    recent_window: int = DEFAULT_RECENT_WINDOW
    max_wait: Optional[int] = None
