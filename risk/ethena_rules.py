from typing import Dict, List

from .models import EthenaMetrics

DEFAULT_DEPEG_RISK = 0.01


def evaluate(metrics: EthenaMetrics) -> Dict[str, object]:
    """
    De-peg deviation model for Ethena.

    Funding rate and de-peg risk penalties stack:
      |funding_rate| > 0.05 -> 20, > 0.02 -> 10
      depeg_risk     > 0.02 -> 15, > 0.01 -> 8
    """
    depeg_risk = metrics.depeg_risk if metrics.depeg_risk is not None else DEFAULT_DEPEG_RISK
    reasons: List[str] = []

    funding_penalty = 0
    if metrics.funding_rate is not None:
        funding_rate = abs(metrics.funding_rate)
        if funding_rate > 0.05:
            funding_penalty = 20
        elif funding_rate > 0.02:
            funding_penalty = 10
        if funding_penalty:
            reasons.append(f"funding rate {metrics.funding_rate:.2%} unstable")

    depeg_penalty = 0
    if depeg_risk > 0.02:
        depeg_penalty = 15
    elif depeg_risk > 0.01:
        depeg_penalty = 8
    if depeg_penalty:
        reasons.append(f"de-peg risk {depeg_risk:.2%}")

    return {
        "factor": "depeg",
        "penalty": funding_penalty + depeg_penalty,
        "reasons": reasons,
        "metrics": {
            "funding_rate": metrics.funding_rate,
            "depeg_risk": depeg_risk,
        },
        "conditions": {
            "funding_penalty": funding_penalty,
            "depeg_penalty": depeg_penalty,
        },
    }
