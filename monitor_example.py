from adapters.n8n import N8nWebhookAdapter
from config import get_settings
from exit_optimizer.comparator import compare
from exit_optimizer.models import MarketQuote, RedemptionQuote
from pulse_monitor import PulseMonitor


def main() -> None:
    settings = get_settings()
    adapter = N8nWebhookAdapter(settings.n8n_url, timeout=settings.http_timeout_sec)
    monitor = PulseMonitor(adapter, polling_interval_sec=settings.polling_interval_sec)
    snap = monitor.snapshot()

    print("=== PulseScore snapshot ===")
    print("Timestamp:", snap["timestamp"])
    for name, entry in snap["protocols"].items():
        source = entry["source"]
        print(f"\n--- {name} ---")
        print("Score:", entry["score"], entry["status"])
        print("Source ok:", source["ok"], source["error"] or "")
        for reason in entry["reasons"]:
            print("  -", reason)
    print("\nGlobal:", snap["global"])

    print("\n=== Exit comparison (100 units, offline quotes) ===")
    result = compare(
        100,
        RedemptionQuote(asset="USDE", nav=1.0, cooldown_days=7),
        MarketQuote(asset="USDE", price=1.0, liquidity=1_000_000),
    )
    comparison = result.comparison
    print("Redemption:", f"{result.redemption_path.final_value:.2f}", result.redemption_path.time_to_liquidity)
    print("Market:", f"{result.market_path.final_value:.2f}", result.market_path.time_to_liquidity)
    print("Recommendation:", comparison.recommendation.value, f"(net {comparison.net_difference:.2f})")
    for name, scenario in comparison.scenarios.items():
        print(f"  {name}: {scenario.redemption_value:.2f} vs {scenario.market_value:.2f} -> {scenario.recommendation.value}")


if __name__ == "__main__":
    main()
