from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from risk.models import EthenaMetrics, FalconMetrics, PendleMetrics, Status, status_from_score
from risk.risk_factory import aggregate_score, evaluate, metrics_from_dict, score

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_missing_metrics_score_zero() -> None:
    assert score(None) == 0
    assert evaluate(None).status is Status.CRITICAL


def test_healthy_pendle_scores_full_marks() -> None:
    for days in (7, 8, 30, 365):
        metrics = PendleMetrics(maturity_date=NOW + timedelta(days=days), confidence=0.95)
        assert score(metrics, now=NOW) == 100


@pytest.mark.parametrize(
    ("delta", "expected"),
    [
        (timedelta(days=6), 90),
        # partial days round up: 6.5 days counts as 7
        (timedelta(days=6, hours=12), 100),
        (timedelta(days=2), 80),
        (timedelta(hours=12), 80),
        (timedelta(0), 70),
        (timedelta(days=-3), 70),
    ],
)
def test_pendle_maturity_tiers(delta: timedelta, expected: int) -> None:
    metrics = PendleMetrics(maturity_date=NOW + delta)
    assert score(metrics, now=NOW) == expected


def test_pendle_without_maturity_skips_temporal_factor() -> None:
    result = evaluate(PendleMetrics(confidence=0.85), now=NOW)
    assert result.value == 85
    assert result.penalties == {"temporal": 0, "liveness": 15}


def test_naive_maturity_is_read_as_utc() -> None:
    naive = (NOW + timedelta(days=2)).replace(tzinfo=None)
    assert score(PendleMetrics(maturity_date=naive), now=NOW) == 80


@pytest.mark.parametrize(
    ("cooldown_days", "expected"),
    [(0, 75), (2.9, 75), (3, 85), (4.5, 85), (5, 95), (6.99, 95), (7, 100), (14, 100)],
)
def test_falcon_cooldown_tiers_take_lesser_penalty_on_boundary(cooldown_days: float, expected: int) -> None:
    assert score(FalconMetrics(cooldown_days=cooldown_days)) == expected


def test_falcon_without_cooldown_is_not_penalised() -> None:
    assert score(FalconMetrics()) == 100


@pytest.mark.parametrize(
    ("funding_rate", "depeg_risk", "expected"),
    [
        (0.0, 0.0, 100),
        (0.02, 0.01, 100),
        (0.03, None, 90),
        (0.05, None, 90),
        (0.06, None, 80),
        (-0.06, None, 80),
        (0.0, 0.015, 92),
        (0.0, 0.03, 85),
        (0.1, 0.03, 65),
    ],
)
def test_ethena_depeg_penalties_stack(funding_rate, depeg_risk, expected) -> None:
    assert score(EthenaMetrics(funding_rate=funding_rate, depeg_risk=depeg_risk)) == expected


def test_ethena_adversarial_inputs_clamp_above_zero() -> None:
    result = evaluate(EthenaMetrics(funding_rate=1.0, depeg_risk=1.0, confidence=0.0))
    assert result.value == 35
    assert result.penalties == {"depeg": 35, "liveness": 30}
    assert result.status is Status.WARNING


def test_only_ethena_incurs_depeg_penalty() -> None:
    assert "depeg" not in evaluate(FalconMetrics(cooldown_days=10)).penalties
    assert "depeg" not in evaluate(PendleMetrics(), now=NOW).penalties
    assert "temporal" not in evaluate(EthenaMetrics(funding_rate=0.0)).penalties


@pytest.mark.parametrize(
    ("confidence", "expected"),
    [(None, 100), (1.5, 100), (0.95, 100), (0.94, 95), (0.9, 95), (0.89, 85), (0.8, 85), (0.79, 70), (-1.0, 70)],
)
def test_liveness_tiers(confidence, expected) -> None:
    assert score(FalconMetrics(cooldown_days=30, confidence=confidence)) == expected


def test_worst_case_falcon_combines_factors() -> None:
    result = evaluate(FalconMetrics(cooldown_days=1, confidence=0.5))
    assert result.value == 45
    assert len(result.reasons) == 2


def test_score_is_deterministic_for_fixed_now() -> None:
    metrics = PendleMetrics(maturity_date=NOW + timedelta(days=4), confidence=0.91)
    assert evaluate(metrics, now=NOW) == evaluate(metrics, now=NOW)


@pytest.mark.parametrize(
    ("value", "status"),
    [(100, Status.SAFE), (75, Status.SAFE), (74, Status.MONITOR), (50, Status.MONITOR),
     (49, Status.WARNING), (25, Status.WARNING), (24, Status.CRITICAL), (0, Status.CRITICAL)],
)
def test_status_thresholds(value: int, status: Status) -> None:
    assert status_from_score(value) is status


def test_status_is_monotonic_over_all_scores() -> None:
    order = [Status.CRITICAL, Status.WARNING, Status.MONITOR, Status.SAFE]
    ranks = [order.index(status_from_score(value)) for value in range(0, 101)]
    assert ranks == sorted(ranks)


def test_aggregate_score_rounds_half_up() -> None:
    assert aggregate_score([100, 85, 70]) == 85
    assert aggregate_score([100, 85]) == 93
    assert aggregate_score([]) == 0


def test_metrics_from_dict_accepts_webhook_keys() -> None:
    pendle = metrics_from_dict("Pendle", {"maturityDate": "2026-01-03T12:00:00Z", "confidence": "0.9"})
    assert pendle == PendleMetrics(maturity_date=NOW + timedelta(days=2), confidence=0.9)

    ethena = metrics_from_dict("ethena", {"fundingRate": 0.01, "depeg_risk": 0.02})
    assert ethena.funding_rate == 0.01
    assert ethena.depeg_risk == 0.02
    assert ethena.confidence is None

    falcon = metrics_from_dict("falcon", {"cooldownDays": "3"})
    assert falcon.cooldown_days == 3.0


def test_metrics_from_dict_rejects_unknown_protocol() -> None:
    with pytest.raises(ValueError, match="Unknown protocol"):
        metrics_from_dict("aave", {})


def test_risk_score_to_dict() -> None:
    payload = evaluate(FalconMetrics(cooldown_days=4)).to_dict()
    assert payload["score"] == 85
    assert payload["status"] == "Safe"
    assert payload["penalties"]["temporal"] == 15
