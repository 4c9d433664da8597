from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

from adapters.n8n import N8nWebhookAdapter
from pulse_monitor import PulseMonitor
from risk.models import EthenaMetrics, FalconMetrics, PendleMetrics

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


class _MetricsAdapter:
    name = "fake"

    def __init__(self, fail_ethena: bool = False) -> None:
        self.fail_ethena = fail_ethena

    def fetch_pendle(self) -> PendleMetrics:
        return PendleMetrics(maturity_date=NOW + timedelta(days=30), confidence=0.95)

    def fetch_ethena(self) -> EthenaMetrics:
        if self.fail_ethena:
            raise RuntimeError("webhook timeout")
        return EthenaMetrics(funding_rate=0.03, depeg_risk=0.015)

    def fetch_falcon(self) -> FalconMetrics:
        return FalconMetrics(cooldown_days=4)


def test_snapshot_scores_every_protocol() -> None:
    snap = PulseMonitor(_MetricsAdapter()).snapshot(now=NOW)

    protocols = snap["protocols"]
    assert protocols["pendle"]["score"] == 100
    assert protocols["ethena"]["score"] == 82
    assert protocols["falcon"]["score"] == 85
    assert protocols["falcon"]["status"] == "Safe"
    assert protocols["pendle"]["source"]["ok"] is True
    assert protocols["pendle"]["source"]["data"]["protocol"] == "pendle"
    # (100 + 82 + 85) / 3 = 89
    assert snap["global"] == {"score": 89, "status": "Safe"}
    assert snap["meta"]["adapter"] == "fake"
    assert snap["timestamp"] == NOW.isoformat()


def test_failed_fetch_scores_zero_without_blocking_others() -> None:
    monitor = PulseMonitor(_MetricsAdapter(fail_ethena=True))
    snap = monitor.snapshot(now=NOW)

    ethena = snap["protocols"]["ethena"]
    assert ethena["source"] == {"ok": False, "data": None, "error": "webhook timeout"}
    assert ethena["score"] == 0
    assert ethena["status"] == "Critical"
    assert snap["protocols"]["falcon"]["score"] == 85
    assert monitor.last_scores == {"pendle": 100, "ethena": 0, "falcon": 85}
    # (100 + 0 + 85) / 3 = 61.67
    assert snap["global"]["score"] == 62


def test_run_polls_until_stopped() -> None:
    stop = threading.Event()
    seen = []

    def on_snapshot(snap) -> None:
        seen.append(snap)
        stop.set()

    PulseMonitor(_MetricsAdapter(), polling_interval_sec=0.01).run(stop, on_snapshot)

    assert len(seen) == 1


def test_run_survives_a_failing_callback() -> None:
    stop = threading.Event()
    calls = []

    def on_snapshot(snap) -> None:
        calls.append(snap)
        if len(calls) == 1:
            raise ValueError("render failed")
        stop.set()

    PulseMonitor(_MetricsAdapter(), polling_interval_sec=0.01).run(stop, on_snapshot)

    assert len(calls) == 2


def test_missing_funding_rate_still_scores_ethena(fake_session) -> None:
    fake_session.route("/webhook/pendle-apy", {"maturityDate": "2026-06-01T00:00:00Z"})
    fake_session.route("/webhook/ethena-funding", {"depegRisk": 0.005, "apy": 12})
    fake_session.route("/webhook/falcon-cooldown", {"cooldownDays": 7})

    snap = PulseMonitor(N8nWebhookAdapter("https://n8n.example", session=fake_session)).snapshot(now=NOW)

    assert snap["protocols"]["ethena"]["source"]["ok"] is True
    assert snap["protocols"]["ethena"]["score"] == 100
