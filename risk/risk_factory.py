from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from . import ethena_rules, falcon_rules, liveness_rules, pendle_rules
from .models import (
    EthenaMetrics,
    FalconMetrics,
    PendleMetrics,
    ProtocolMetrics,
    RiskScore,
)

MAX_SCORE = 100
MIN_SCORE = 0


def evaluate(metrics: Optional[ProtocolMetrics], now: Optional[datetime] = None) -> RiskScore:
    """
    Dispatch to the protocol-specific rules and fold the penalties into a PulseScore.

    Missing metrics score 0 (treated as maximally risky).
    """
    if metrics is None:
        return RiskScore(value=MIN_SCORE, reasons=["no metrics available"])

    now = now or datetime.now(timezone.utc)
    results: List[Dict[str, object]] = []

    if isinstance(metrics, PendleMetrics):
        results.append(pendle_rules.evaluate(metrics, now))
    elif isinstance(metrics, FalconMetrics):
        results.append(falcon_rules.evaluate(metrics))
    elif isinstance(metrics, EthenaMetrics):
        results.append(ethena_rules.evaluate(metrics))
    results.append(liveness_rules.evaluate(metrics.confidence))

    penalties: Dict[str, int] = {}
    reasons: List[str] = []
    for result in results:
        penalties[str(result["factor"])] = int(result["penalty"])  # type: ignore[arg-type]
        reasons.extend(result["reasons"])  # type: ignore[arg-type]

    value = max(MIN_SCORE, min(MAX_SCORE, MAX_SCORE - sum(penalties.values())))
    return RiskScore(value=value, penalties=penalties, reasons=reasons)


def score(metrics: Optional[ProtocolMetrics], now: Optional[datetime] = None) -> int:
    return evaluate(metrics, now).value


def aggregate_score(scores: Iterable[int]) -> int:
    """Mean of per-protocol scores, rounded half up. Empty input scores 0."""
    values = list(scores)
    if not values:
        return 0
    return int(sum(values) / len(values) + 0.5)


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def metrics_from_dict(protocol: str, fields: Mapping[str, Any]) -> ProtocolMetrics:
    """
    Build a typed metrics snapshot from loosely shaped fields.

    Accepts both snake_case and the camelCase keys used by the webhooks.
    """
    proto = (protocol or "").lower()

    def pick(*keys: str) -> Any:
        for key in keys:
            if fields.get(key) is not None:
                return fields[key]
        return None

    confidence = _optional_float(pick("confidence"))
    apy = _optional_float(pick("apy"))

    if proto == "pendle":
        return PendleMetrics(
            maturity_date=parse_datetime(pick("maturity_date", "maturityDate")),
            confidence=confidence,
            apy=apy,
        )
    if proto == "ethena":
        return EthenaMetrics(
            funding_rate=_optional_float(pick("funding_rate", "fundingRate")),
            depeg_risk=_optional_float(pick("depeg_risk", "depegRisk")),
            confidence=confidence,
            apy=apy,
        )
    if proto == "falcon":
        return FalconMetrics(
            cooldown_days=_optional_float(pick("cooldown_days", "cooldownDays")),
            confidence=confidence,
            apy=apy,
        )
    raise ValueError(f"Unknown protocol '{protocol}'. Available: ['pendle', 'ethena', 'falcon']")
