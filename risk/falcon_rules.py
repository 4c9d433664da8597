from typing import Dict, List

from .models import FalconMetrics


def evaluate(metrics: FalconMetrics) -> Dict[str, object]:
    """
    Temporal risk for Falcon cooldown windows.

      cooldown_days < 3 -> 25
      cooldown_days < 5 -> 15
      cooldown_days < 7 -> 5
    """
    cooldown_days = metrics.cooldown_days
    reasons: List[str] = []
    penalty = 0

    if cooldown_days is not None:
        if cooldown_days < 3:
            penalty = 25
        elif cooldown_days < 5:
            penalty = 15
        elif cooldown_days < 7:
            penalty = 5
        if penalty:
            reasons.append(f"cooldown window {cooldown_days:g} day(s)")

    return {
        "factor": "temporal",
        "penalty": penalty,
        "reasons": reasons,
        "metrics": {"cooldown_days": cooldown_days},
    }
