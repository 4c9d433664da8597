from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from exit_optimizer.models import MarketQuote, RedemptionQuote
from risk.models import EthenaMetrics, FalconMetrics, PendleMetrics


@runtime_checkable
class MetricsAdapter(Protocol):
    """
    Adapter interface for protocol metric sources.
    """

    name: str

    def fetch_pendle(self) -> PendleMetrics:
        ...

    def fetch_ethena(self) -> EthenaMetrics:
        ...

    def fetch_falcon(self) -> FalconMetrics:
        ...


@runtime_checkable
class QuoteAdapter(Protocol):
    """
    Adapter interface for exit pricing (redemption NAV and DEX price).
    """

    name: str

    def fetch_redemption_quote(self, asset: str) -> RedemptionQuote:
        ...

    def fetch_market_quote(self, asset: str) -> MarketQuote:
        ...


@runtime_checkable
class AgentAdapter(Protocol):
    name: str

    def send_agent_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        ...


@runtime_checkable
class RecordsAdapter(Protocol):
    """
    Record store holding yield logs, the watchlist and the user profile.
    """

    name: str

    def fetch_yield_logs(self, period: str = "all", now: Optional[Any] = None) -> List[Dict[str, Any]]:
        ...

    def fetch_watchlist(self) -> List[Dict[str, Any]]:
        ...

    def fetch_user_profile(self) -> Dict[str, Any]:
        ...
