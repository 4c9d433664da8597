from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

DEFAULT_DEPEG_SCENARIOS: Dict[str, float] = {
    "best": 0.0,
    "mid": 0.005,
    "worst": 0.02,
}


class Recommendation(str, Enum):
    WAIT = "WAIT"
    EXIT_NOW = "EXIT_NOW"


@dataclass(frozen=True)
class ExitConfig:
    """Fee and yield assumptions for comparing exit paths."""

    slippage_rate: float = 0.004
    gas_cost: float = 5.0
    daily_yield_rate: float = 0.024
    depeg_scenarios: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_DEPEG_SCENARIOS))


@dataclass(frozen=True)
class RedemptionQuote:
    asset: str
    nav: float
    cooldown_days: float


@dataclass(frozen=True)
class MarketQuote:
    asset: str
    price: float
    liquidity: float = 0.0
    dex: Optional[str] = None


@dataclass(frozen=True)
class ExitPath:
    strategy: str
    final_value: float
    cost: float
    time_to_liquidity: str
    risk_notes: Tuple[str, ...] = ()
    yield_accrued: float = 0.0
    slippage_loss: float = 0.0
    gas_cost: float = 0.0
    cooldown_days: float = 0.0


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    depeg_fraction: float
    redemption_value: float
    market_value: float
    recommendation: Recommendation
    gain_loss: float


@dataclass(frozen=True)
class ExitComparison:
    net_difference: float
    # None when the redemption path is worth nothing
    percent_difference: Optional[float]
    recommendation: Recommendation
    breakeven_depeg_percent: float
    scenarios: Dict[str, ScenarioResult]
    liquidity_gain_hours: float


@dataclass(frozen=True)
class ExitResult:
    redemption_path: ExitPath
    market_path: ExitPath
    comparison: ExitComparison

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
