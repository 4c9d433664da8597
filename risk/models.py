from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union


class Status(str, Enum):
    SAFE = "Safe"
    MONITOR = "Monitor"
    WARNING = "Warning"
    CRITICAL = "Critical"


def status_from_score(score: int) -> Status:
    if score >= 75:
        return Status.SAFE
    if score >= 50:
        return Status.MONITOR
    if score >= 25:
        return Status.WARNING
    return Status.CRITICAL


@dataclass(frozen=True)
class PendleMetrics:
    """Pendle yield token: risk grows as maturity approaches."""

    maturity_date: Optional[datetime] = None
    confidence: Optional[float] = None
    apy: Optional[float] = None
    protocol: str = field(default="pendle", init=False)


@dataclass(frozen=True)
class EthenaMetrics:
    """Ethena sUSDe: funding rate instability and de-peg risk."""

    funding_rate: Optional[float] = None
    depeg_risk: Optional[float] = None
    confidence: Optional[float] = None
    apy: Optional[float] = None
    protocol: str = field(default="ethena", init=False)


@dataclass(frozen=True)
class FalconMetrics:
    """Falcon LST: shorter remaining cooldown windows score lower."""

    cooldown_days: Optional[float] = None
    confidence: Optional[float] = None
    apy: Optional[float] = None
    protocol: str = field(default="falcon", init=False)


ProtocolMetrics = Union[PendleMetrics, EthenaMetrics, FalconMetrics]


@dataclass(frozen=True)
class RiskScore:
    value: int
    penalties: Dict[str, int] = field(default_factory=dict)
    reasons: List[str] = field(default_factory=list)

    @property
    def status(self) -> Status:
        return status_from_score(self.value)

    def to_dict(self) -> Dict[str, object]:
        return {
            "score": self.value,
            "status": self.status.value,
            "penalties": dict(self.penalties),
            "reasons": list(self.reasons),
        }
