"""
Tax export for logged yield rewards.

Each yield log records a reward received from a protocol together with the
exchange rate at receipt. The exporter values every reward in the requested
currency, applies a flat effective tax rate and renders a CSV.
"""

import calendar
import csv
import io
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from logging_config import get_logger
from risk.risk_factory import parse_datetime

logger = get_logger(__name__)

PERIODS = ("all", "current-month", "last-quarter", "last-year")

CSV_COLUMNS = [
    "Timestamp",
    "Asset",
    "Protocol",
    "RewardAmount",
    "ValueLocal",
    "ExchangeRate",
    "TaxLiability",
    "RiskScoreAtTime",
]


class Currency(str, Enum):
    KES = "KES"
    USD = "USD"


# Simplified effective rates per reporting currency.
TAX_RATES: Dict[Currency, float] = {
    Currency.KES: 0.30,
    Currency.USD: 0.20,
}

FxRates = Mapping[Tuple[Currency, Currency], float]


def currency_for_location(location: Optional[str]) -> Currency:
    """Kenyan users report in KES, everyone else in USD."""
    return Currency.KES if (location or "").upper() == "KE" else Currency.USD


@dataclass(frozen=True)
class YieldLog:
    timestamp: str
    asset: str
    protocol: str
    reward_amount: float
    exchange_rate: float = 1.0
    currency: Currency = Currency.KES
    risk_score: Optional[Any] = None

    @classmethod
    def from_record(cls, fields: Mapping[str, Any]) -> "YieldLog":
        """
        Build from an Airtable YieldLogs record (fields keyed by column name).

        Raises ValueError for an unknown currency, a non-numeric amount or rate,
        or an unparseable timestamp.
        """
        rate = fields.get("ExchangeRate")
        currency = fields.get("Currency") or Currency.KES.value
        timestamp = str(fields.get("Timestamp") or "")
        parse_datetime(timestamp)
        return cls(
            timestamp=timestamp,
            asset=str(fields.get("Asset") or ""),
            protocol=str(fields.get("Protocol") or ""),
            reward_amount=float(fields.get("RewardAmount") or 0.0),
            exchange_rate=float(rate) if rate else 1.0,
            currency=Currency(str(currency).upper()),
            risk_score=fields.get("RiskScore"),
        )

    @property
    def received_at(self) -> Optional[datetime]:
        return parse_datetime(self.timestamp)


def parse_yield_logs(records: Iterable[Mapping[str, Any]]) -> List[YieldLog]:
    """Parse Airtable records, skipping (and logging) the ones that cannot be valued."""
    logs: List[YieldLog] = []
    for record in records:
        try:
            logs.append(YieldLog.from_record(record))
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping yield log %s: %s", record.get("id", "?"), exc)
    return logs


def convert(value: float, source: Currency, target: Currency, fx_rates: Optional[FxRates] = None) -> float:
    """Convert between reporting currencies using an explicit rate table."""
    if source == target:
        return value
    fx_rates = fx_rates or {}
    if (source, target) in fx_rates:
        return value * fx_rates[(source, target)]
    if (target, source) in fx_rates:
        return value / fx_rates[(target, source)]
    raise ValueError(f"No FX rate between {source.value} and {target.value}")


def tax_liability(value_local: float, currency: Currency) -> float:
    return value_local * TAX_RATES[currency]


def cost_basis(log: YieldLog, currency: Optional[Currency] = None, fx_rates: Optional[FxRates] = None) -> Dict[str, Any]:
    """The reward is acquired at receipt; its basis is the value at that moment."""
    currency = currency or log.currency
    factor = convert(1.0, log.currency, currency, fx_rates)
    return {
        "acquisition_date": log.timestamp,
        "acquisition_rate": log.exchange_rate * factor,
        "amount_crypto": log.reward_amount,
        "cost_basis_local": log.reward_amount * log.exchange_rate * factor,
        "currency": currency.value,
    }


def _months_back(moment: datetime, months: int) -> datetime:
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(period: str, now: datetime) -> Optional[datetime]:
    """Earliest timestamp included by a reporting period; None means no bound."""
    if period == "all":
        return None
    if period == "current-month":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if period == "last-quarter":
        return _months_back(now, 3)
    if period == "last-year":
        return _months_back(now, 12)
    raise ValueError(f"Unknown period '{period}'. Available: {list(PERIODS)}")


def filter_by_period(logs: Iterable[YieldLog], period: str, now: Optional[datetime] = None) -> List[YieldLog]:
    start = period_start(period, now or datetime.now(timezone.utc))
    if start is None:
        return list(logs)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)

    kept: List[YieldLog] = []
    for log in logs:
        received = log.received_at
        if received is not None and received >= start:
            kept.append(log)
    return kept


def filter_by_protocol(logs: Iterable[YieldLog], protocol: Optional[str]) -> List[YieldLog]:
    if not protocol:
        return list(logs)
    return [log for log in logs if log.protocol == protocol]


def generate_tax_csv(
    logs: Iterable[YieldLog],
    currency: Currency = Currency.KES,
    fx_rates: Optional[FxRates] = None,
) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)

    for log in logs:
        basis = cost_basis(log, currency, fx_rates)
        value_local = basis["cost_basis_local"]
        writer.writerow(
            [
                log.timestamp,
                log.asset,
                log.protocol,
                f"{log.reward_amount:.8f}",
                f"{value_local:.2f}",
                f"{basis['acquisition_rate']:.4f}",
                f"{tax_liability(value_local, currency):.2f}",
                log.risk_score if log.risk_score not in (None, "") else "N/A",
            ]
        )

    return buffer.getvalue()


def export_filename(currency: Currency, today: Optional[date] = None) -> str:
    today = today or datetime.now(timezone.utc).date()
    return f"yieldguard-tax-export-{currency.value}-{today.isoformat()}.csv"
