from typing import Dict, List, Optional


def evaluate(confidence: Optional[float]) -> Dict[str, object]:
    """
    Protocol liveness from the data source confidence metric.

    Missing confidence is not penalised. Tiers:
      < 0.80 -> 30, < 0.90 -> 15, < 0.95 -> 5
    """
    reasons: List[str] = []
    penalty = 0

    if confidence is not None:
        if confidence < 0.8:
            penalty = 30
        elif confidence < 0.9:
            penalty = 15
        elif confidence < 0.95:
            penalty = 5
        if penalty:
            reasons.append(f"liveness confidence {confidence:.2f}")

    return {
        "factor": "liveness",
        "penalty": penalty,
        "reasons": reasons,
        "metrics": {"confidence": confidence},
    }
