"""
API server wiring the risk engine, exit optimizer, reports and assistant into HTTP endpoints.

Usage:
  pip install -e .
  uvicorn api_server:app --reload --port 8000
"""

import threading
from collections import OrderedDict
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, List, Optional, Tuple

import requests
from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from adapters.airtable import AirtableAdapter
from adapters.n8n import N8nWebhookAdapter
from assistant.agent import AssistantAgent, AssistantBusyError
from config import Settings, exit_config_from_env, get_settings
from exit_optimizer.comparator import compare
from exit_optimizer.models import ExitConfig, MarketQuote, RedemptionQuote
from exit_optimizer.service import ExitOptimizer, QuoteUnavailableError
from exit_optimizer.swap import prepare_swap
from logging_config import get_logger
from pulse_monitor import PulseMonitor
from reporting.tax_export import (
    PERIODS,
    Currency,
    YieldLog,
    currency_for_location,
    export_filename,
    filter_by_protocol,
    generate_tax_csv,
    parse_yield_logs,
)
from risk.risk_factory import evaluate as evaluate_risk_model, metrics_from_dict

logger = get_logger(__name__)


class ScoreRequest(BaseModel):
    protocol: str = Field(..., description="pendle, ethena or falcon.")
    maturity_date: Optional[datetime] = None
    funding_rate: Optional[float] = None
    depeg_risk: Optional[float] = None
    cooldown_days: Optional[float] = None
    confidence: Optional[float] = None
    apy: Optional[float] = None


class CompareRequest(BaseModel):
    """
    Exit comparison from explicit quotes; no upstream calls.
    Fee/yield fields override the server defaults when present.
    """

    asset: str = "USDE"
    amount: float = Field(..., gt=0)
    nav: float = Field(..., ge=0)
    cooldown_days: float = Field(..., ge=0)
    price: float = Field(..., ge=0)
    liquidity: float = Field(default=0.0, ge=0)
    slippage_rate: Optional[float] = Field(default=None, ge=0)
    gas_cost: Optional[float] = Field(default=None, ge=0)
    daily_yield_rate: Optional[float] = Field(default=None, ge=0)


class CalculateRequest(BaseModel):
    asset: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)


class SwapRequest(BaseModel):
    asset: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    wallet_address: str = Field(..., min_length=1)
    token_out: str = "USDC"


class TaxExportRequest(BaseModel):
    currency: Optional[Currency] = Field(default=None, description="Defaults from USER_LOCATION.")
    period: str = Field(default="all", description=f"One of {list(PERIODS)}.")
    protocol: Optional[str] = None
    usd_kes_rate: Optional[float] = Field(default=None, gt=0, description="KES per USD, for cross-currency logs.")


class ChatRequest(BaseModel):
    session_id: str = "default"
    message: str = Field(..., min_length=1)


session = requests.Session()

app = FastAPI(title="YieldGuard Monitor API", version="0.1.0")

# Assistant sessions keyed by client-supplied id, least recently used first.
MAX_SESSIONS = 256
SESSIONS: "OrderedDict[str, AssistantAgent]" = OrderedDict()
_sessions_lock = threading.Lock()


@lru_cache(maxsize=1)
def get_n8n_adapter() -> N8nWebhookAdapter:
    settings = get_settings()
    return N8nWebhookAdapter(settings.n8n_url, session=session, timeout=settings.http_timeout_sec)


@lru_cache(maxsize=1)
def get_airtable_adapter() -> AirtableAdapter:
    settings = get_settings()
    return AirtableAdapter(
        settings.airtable_key,
        settings.airtable_base_id,
        session=session,
        timeout=settings.http_timeout_sec,
    )


def get_exit_config() -> ExitConfig:
    return exit_config_from_env()


def resolve_exit_config(payload: CompareRequest, defaults: ExitConfig) -> ExitConfig:
    return ExitConfig(
        slippage_rate=defaults.slippage_rate if payload.slippage_rate is None else payload.slippage_rate,
        gas_cost=defaults.gas_cost if payload.gas_cost is None else payload.gas_cost,
        daily_yield_rate=defaults.daily_yield_rate if payload.daily_yield_rate is None else payload.daily_yield_rate,
        depeg_scenarios=dict(defaults.depeg_scenarios),
    )


def resolve_session(session_id: str, n8n: N8nWebhookAdapter, records: AirtableAdapter, settings: Settings) -> AssistantAgent:
    with _sessions_lock:
        agent = SESSIONS.get(session_id)
        if agent is not None:
            SESSIONS.move_to_end(session_id)
            return agent

    profile: Dict[str, object] = {}
    watchlist = []
    try:
        profile = records.fetch_user_profile()
        watchlist = records.fetch_watchlist()
    except (requests.RequestException, RuntimeError) as exc:
        logger.warning("Assistant context unavailable for session %s: %s", session_id, exc)

    agent = AssistantAgent(n8n, model=settings.agent_model, profile=profile, watchlist=watchlist)
    with _sessions_lock:
        agent = SESSIONS.setdefault(session_id, agent)
        while len(SESSIONS) > MAX_SESSIONS:
            evicted, _ = SESSIONS.popitem(last=False)
            logger.info("Evicted assistant session %s", evicted)
        return agent


def resolve_fx_rates(
    payload: TaxExportRequest,
    currency: Currency,
    logs: List[YieldLog],
    n8n: N8nWebhookAdapter,
) -> Optional[Dict[Tuple[Currency, Currency], float]]:
    if payload.usd_kes_rate:
        return {(Currency.USD, Currency.KES): payload.usd_kes_rate}
    if all(log.currency == currency for log in logs):
        return None

    try:
        rate = n8n.fetch_exchange_rate("USD", "KES", datetime.now(timezone.utc).isoformat())
    except (requests.RequestException, RuntimeError, ValueError) as exc:
        logger.warning("USD/KES rate unavailable: %s", exc)
        return None
    return {(Currency.USD, Currency.KES): rate}


@app.get("/health")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, object]:
    return {
        "ok": True,
        "adapters": ["n8n", "airtable"],
        "airtable_configured": settings.airtable_configured,
        "polling_interval_sec": settings.polling_interval_sec,
    }


@app.post("/score")
def score_endpoint(payload: ScoreRequest) -> Dict[str, object]:
    try:
        metrics = metrics_from_dict(payload.protocol, payload.model_dump(exclude={"protocol"}))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"protocol": metrics.protocol, **evaluate_risk_model(metrics).to_dict()}


@app.get("/pulse")
def pulse(
    adapter: N8nWebhookAdapter = Depends(get_n8n_adapter),
    settings: Settings = Depends(get_settings),
) -> Dict[str, object]:
    monitor = PulseMonitor(adapter, polling_interval_sec=settings.polling_interval_sec)
    return monitor.snapshot()


@app.post("/exit/compare")
def exit_compare(payload: CompareRequest, defaults: ExitConfig = Depends(get_exit_config)) -> Dict[str, object]:
    result = compare(
        payload.amount,
        RedemptionQuote(asset=payload.asset.upper(), nav=payload.nav, cooldown_days=payload.cooldown_days),
        MarketQuote(asset=payload.asset.upper(), price=payload.price, liquidity=payload.liquidity),
        resolve_exit_config(payload, defaults),
    )
    return result.to_dict()


@app.post("/exit/calculate")
def exit_calculate(
    payload: CalculateRequest,
    adapter: N8nWebhookAdapter = Depends(get_n8n_adapter),
    config: ExitConfig = Depends(get_exit_config),
) -> Dict[str, object]:
    optimizer = ExitOptimizer(adapter, config)
    try:
        result = optimizer.calculate(payload.asset, payload.amount)
    except QuoteUnavailableError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {
        "input": {"asset": payload.asset.upper(), "amount": payload.amount},
        **result.to_dict(),
    }


@app.post("/exit/swap")
def exit_swap(payload: SwapRequest, config: ExitConfig = Depends(get_exit_config)) -> Dict[str, object]:
    return prepare_swap(payload.amount, payload.asset.upper(), payload.wallet_address, config, token_out=payload.token_out)


@app.post("/reports/tax-csv")
def tax_csv(
    payload: TaxExportRequest,
    records: AirtableAdapter = Depends(get_airtable_adapter),
    n8n: N8nWebhookAdapter = Depends(get_n8n_adapter),
    settings: Settings = Depends(get_settings),
) -> Response:
    if payload.period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Unknown period '{payload.period}'. Available: {list(PERIODS)}")

    try:
        raw_logs = records.fetch_yield_logs(payload.period)
    except (requests.RequestException, RuntimeError) as exc:
        raise HTTPException(status_code=502, detail=f"Yield logs unavailable: {exc}") from exc

    currency = payload.currency or currency_for_location(settings.user_location)
    logs = filter_by_protocol(parse_yield_logs(raw_logs), payload.protocol)
    fx_rates = resolve_fx_rates(payload, currency, logs, n8n)
    try:
        content = generate_tax_csv(logs, currency, fx_rates)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    filename = export_filename(currency)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/assistant/chat")
def assistant_chat(
    payload: ChatRequest,
    n8n: N8nWebhookAdapter = Depends(get_n8n_adapter),
    records: AirtableAdapter = Depends(get_airtable_adapter),
    settings: Settings = Depends(get_settings),
) -> Dict[str, object]:
    agent = resolve_session(payload.session_id, n8n, records, settings)
    try:
        result = agent.send_message(payload.message)
    except AssistantBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return {"session_id": payload.session_id, **result, "history_length": len(agent.history)}


@app.delete("/assistant/{session_id}")
def assistant_clear(session_id: str) -> Dict[str, object]:
    with _sessions_lock:
        agent = SESSIONS.pop(session_id, None)
    if agent is None:
        raise HTTPException(status_code=404, detail=f"Unknown session '{session_id}'.")
    agent.clear()
    return {"ok": True, "session_id": session_id}
