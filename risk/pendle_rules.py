import math
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .models import PendleMetrics

SECONDS_PER_DAY = 24 * 60 * 60


def days_until(target: datetime, now: datetime) -> int:
    """Whole days until target, rounded up. Negative once target has passed."""
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return math.ceil((target - now).total_seconds() / SECONDS_PER_DAY)


def evaluate(metrics: PendleMetrics, now: datetime) -> Dict[str, object]:
    """
    Temporal risk for Pendle yield tokens.

    Penalty tiers by days to maturity:
      < 1 day  -> 30
      < 3 days -> 20
      < 7 days -> 10
    An overdue maturity yields a negative day count and takes the top tier.
    """
    reasons: List[str] = []
    penalty = 0
    days: Optional[int] = None

    if metrics.maturity_date is not None:
        days = days_until(metrics.maturity_date, now)
        if days < 1:
            penalty = 30
        elif days < 3:
            penalty = 20
        elif days < 7:
            penalty = 10
        if penalty:
            reasons.append(f"maturity in {days} day(s)")

    return {
        "factor": "temporal",
        "penalty": penalty,
        "reasons": reasons,
        "metrics": {"days_to_maturity": days},
    }
