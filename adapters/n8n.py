from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from exit_optimizer.models import MarketQuote, RedemptionQuote
from logging_config import get_logger
from risk.models import EthenaMetrics, FalconMetrics, PendleMetrics
from risk.risk_factory import parse_datetime

logger = get_logger(__name__)

DEFAULT_PENDLE_CONFIDENCE = 0.95
DEFAULT_DEPEG_RISK = 0.01
DEFAULT_NAV = 1.0
DEFAULT_COOLDOWN_DAYS = 7.0
DEFAULT_MARKET_PRICE = 1.0


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _float_or(value: Any, default: Optional[float]) -> Optional[float]:
    # Zero and missing values both fall back to the default, as the webhooks
    # report "no data" as 0.
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed else default


def _reading_or(value: Any, default: Optional[float]) -> Optional[float]:
    # Readings where 0 is meaningful (confidence, funding rate): only missing
    # or unparseable values fall back.
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


class N8nWebhookAdapter:
    """
    n8n-specific adapter that wraps the webhook workflows feeding the dashboard.
    """

    name = "n8n"

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    # --- Webhook helper ---
    def _post(self, hook: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = dict(payload)
        body.setdefault("timestamp", _now_iso())
        resp = self.session.post(f"{self.base_url}/webhook/{hook}", json=body, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise RuntimeError(f"Webhook '{hook}' returned non-object payload: {data!r}")
        logger.debug("Webhook %s returned %s", hook, data)
        return data

    # --- Protocol metrics ---
    def fetch_pendle(self) -> PendleMetrics:
        data = self._post("pendle-apy", {"action": "fetch_current_apy"})
        try:
            maturity = parse_datetime(data.get("maturityDate"))
        except ValueError:
            logger.warning("Unparseable Pendle maturity date %r; temporal risk skipped", data.get("maturityDate"))
            maturity = None
        return PendleMetrics(
            maturity_date=maturity,
            confidence=_reading_or(data.get("confidence"), DEFAULT_PENDLE_CONFIDENCE),
            apy=_float_or(data.get("apy"), None),
        )

    def fetch_ethena(self) -> EthenaMetrics:
        data = self._post("ethena-funding", {"action": "fetch_funding_rate"})
        funding_rate = _reading_or(data.get("fundingRate"), None)
        if funding_rate is None:
            logger.warning("Ethena webhook returned no funding rate; funding risk skipped")
        return EthenaMetrics(
            funding_rate=funding_rate,
            depeg_risk=_float_or(data.get("depegRisk"), DEFAULT_DEPEG_RISK),
            confidence=_reading_or(data.get("confidence"), None),
            apy=_float_or(data.get("apy"), None),
        )

    def fetch_falcon(self) -> FalconMetrics:
        data = self._post("falcon-cooldown", {"action": "fetch_cooldown_state"})
        cooldown = data.get("cooldownDays")
        return FalconMetrics(
            cooldown_days=float(cooldown) if cooldown is not None else None,
            confidence=_reading_or(data.get("confidence"), None),
            apy=_float_or(data.get("apy"), None),
        )

    # --- Exit pricing ---
    def fetch_redemption_quote(self, asset: str) -> RedemptionQuote:
        data = self._post("redemption-value", {"asset": asset, "action": "fetch_nav"})
        return RedemptionQuote(
            asset=asset,
            nav=_float_or(data.get("nav"), DEFAULT_NAV),
            cooldown_days=_float_or(data.get("cooldownDays"), DEFAULT_COOLDOWN_DAYS),
        )

    def fetch_market_quote(self, asset: str, dex: str = "uniswap-v4") -> MarketQuote:
        data = self._post("market-price", {"asset": asset, "dex": dex, "action": "fetch_price"})
        return MarketQuote(
            asset=asset,
            price=_float_or(data.get("price"), DEFAULT_MARKET_PRICE),
            liquidity=_float_or(data.get("liquidity"), 0.0),
            dex=data.get("dex") or dex,
        )

    def fetch_exchange_rate(self, asset: str, currency: str, timestamp: str) -> float:
        data = self._post(
            "exchange-rate",
            {"asset": asset, "currency": currency, "timestamp": timestamp, "action": "get_rate_at_time"},
        )
        if data.get("rate") is None:
            raise RuntimeError(f"Exchange rate webhook returned no rate: {data}")
        return float(data["rate"])

    # --- Agent ---
    def send_agent_message(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._post("nairobi-agent", payload)
