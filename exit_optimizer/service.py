from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from adapters.abstract import QuoteAdapter
from logging_config import get_logger

from .comparator import compare
from .models import ExitConfig, ExitResult

logger = get_logger(__name__)


class QuoteUnavailableError(RuntimeError):
    """Raised when either exit quote could not be fetched."""


class ExitOptimizer:
    """
    Fetches the redemption and market quotes for an asset and compares the exits.
    """

    def __init__(self, adapter: QuoteAdapter, config: Optional[ExitConfig] = None) -> None:
        self.adapter = adapter
        self.config = config or ExitConfig()

    def calculate(self, asset: str, amount: float) -> ExitResult:
        asset = asset.upper()
        logger.info("Calculating exit for %s %s", amount, asset)

        with ThreadPoolExecutor(max_workers=2) as pool:
            redemption_future = pool.submit(self.adapter.fetch_redemption_quote, asset)
            market_future = pool.submit(self.adapter.fetch_market_quote, asset)

            errors = []
            try:
                redemption_quote = redemption_future.result()
            except Exception as exc:  # noqa: BLE001 - surfaced below as QuoteUnavailableError
                errors.append(f"redemption: {exc}")
            try:
                market_quote = market_future.result()
            except Exception as exc:  # noqa: BLE001
                errors.append(f"market: {exc}")

        if errors:
            logger.error("Quote fetch failed for %s: %s", asset, "; ".join(errors))
            raise QuoteUnavailableError(f"Failed to fetch quotes for {asset}: {'; '.join(errors)}")

        result = compare(amount, redemption_quote, market_quote, self.config)
        logger.info(
            "Exit for %s %s: %s (net %.2f)",
            amount,
            asset,
            result.comparison.recommendation.value,
            result.comparison.net_difference,
        )
        return result
