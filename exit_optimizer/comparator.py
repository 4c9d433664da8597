"""
Redemption vs market exit comparison.

Pure arithmetic over already-validated quotes: no I/O, no logging. Callers
are expected to pass a positive amount.
"""

from typing import Dict, Optional

from .models import (
    ExitComparison,
    ExitConfig,
    ExitPath,
    ExitResult,
    MarketQuote,
    Recommendation,
    RedemptionQuote,
    ScenarioResult,
)

DEFAULT_CONFIG = ExitConfig()

MARKET_TIME_TO_LIQUIDITY = "2-5 minutes"

REDEMPTION_RISKS = (
    "De-peg exposure during lock-up",
    "Opportunity cost of capital",
    "Potential protocol changes",
)
MARKET_RISKS = (
    "DEX slippage impact",
    "Gas fee volatility",
    "Smart contract risk",
)


def _recommend(redemption_value: float, market_value: float) -> Recommendation:
    # ties favour exiting
    return Recommendation.WAIT if redemption_value > market_value else Recommendation.EXIT_NOW


def redemption_path(amount: float, quote: RedemptionQuote, config: ExitConfig = DEFAULT_CONFIG) -> ExitPath:
    yield_accrued = amount * config.daily_yield_rate * quote.cooldown_days
    return ExitPath(
        strategy="Redemption (Cooldown)",
        final_value=amount * quote.nav + yield_accrued,
        cost=0.0,
        time_to_liquidity=f"{quote.cooldown_days:g} days",
        risk_notes=REDEMPTION_RISKS,
        yield_accrued=yield_accrued,
        cooldown_days=quote.cooldown_days,
    )


def market_path(amount: float, quote: MarketQuote, config: ExitConfig = DEFAULT_CONFIG) -> ExitPath:
    gross = amount * quote.price
    slippage_loss = gross * config.slippage_rate
    return ExitPath(
        strategy="Instant Liquidity (DEX)",
        final_value=gross - slippage_loss - config.gas_cost,
        cost=slippage_loss + config.gas_cost,
        time_to_liquidity=MARKET_TIME_TO_LIQUIDITY,
        risk_notes=MARKET_RISKS,
        slippage_loss=slippage_loss,
        gas_cost=config.gas_cost,
    )


def percent_difference(net_difference: float, redemption_value: float) -> Optional[float]:
    if redemption_value == 0:
        return None
    return net_difference / redemption_value * 100


def breakeven_depeg_percent(amount: float, redemption: ExitPath, market: ExitPath) -> float:
    """De-peg percentage at which waiting and exiting are worth the same."""
    return abs((market.cost - redemption.yield_accrued) / amount) * 100


def scenario(
    name: str,
    depeg_fraction: float,
    amount: float,
    redemption: ExitPath,
    market: ExitPath,
) -> ScenarioResult:
    # only the held asset is stressed; an instant market exit is not re-priced
    redemption_value = amount * (1 - depeg_fraction) + redemption.yield_accrued
    market_value = market.final_value
    return ScenarioResult(
        name=name,
        depeg_fraction=depeg_fraction,
        redemption_value=redemption_value,
        market_value=market_value,
        recommendation=_recommend(redemption_value, market_value),
        gain_loss=redemption_value - market_value,
    )


def compare(
    amount: float,
    redemption_quote: RedemptionQuote,
    market_quote: MarketQuote,
    config: ExitConfig = DEFAULT_CONFIG,
) -> ExitResult:
    redemption = redemption_path(amount, redemption_quote, config)
    market = market_path(amount, market_quote, config)

    net_difference = redemption.final_value - market.final_value
    scenarios: Dict[str, ScenarioResult] = {
        name: scenario(name, depeg, amount, redemption, market)
        for name, depeg in config.depeg_scenarios.items()
    }

    comparison = ExitComparison(
        net_difference=net_difference,
        percent_difference=percent_difference(net_difference, redemption.final_value),
        recommendation=_recommend(redemption.final_value, market.final_value),
        breakeven_depeg_percent=breakeven_depeg_percent(amount, redemption, market),
        scenarios=scenarios,
        liquidity_gain_hours=redemption.cooldown_days * 24,
    )
    return ExitResult(redemption_path=redemption, market_path=market, comparison=comparison)
