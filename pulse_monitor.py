import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from adapters.abstract import MetricsAdapter
from logging_config import get_logger
from risk.models import status_from_score
from risk.risk_factory import aggregate_score, evaluate

logger = get_logger(__name__)

PROTOCOLS = ("pendle", "ethena", "falcon")


class PulseMonitor:
    """
    Polls the protocol metric sources and scores each snapshot.

    - Uses an adapter so different data sources can plug in their own fetch logic.
    - Provides snapshot() with a unified return shape.
    """

    def __init__(self, adapter: MetricsAdapter, polling_interval_sec: float = 30.0) -> None:
        self.adapter = adapter
        self.polling_interval_sec = polling_interval_sec
        self.last_scores: Dict[str, int] = {}

    def _fetchers(self) -> Dict[str, Callable[[], Any]]:
        return {
            "pendle": self.adapter.fetch_pendle,
            "ethena": self.adapter.fetch_ethena,
            "falcon": self.adapter.fetch_falcon,
        }

    # --- Unified snapshot ---
    def snapshot(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Fetch every protocol concurrently and score the results.

        Shape:
          {
            "timestamp": "...",
            "protocols": {
              "<name>": {
                "source": {"ok": bool, "data": {...} | None, "error": str | None},
                "score": int,
                "status": "Safe" | "Monitor" | "Warning" | "Critical",
                "penalties": {...},
                "reasons": [...]
              }
            },
            "global": {"score": int, "status": str},
            "meta": {"adapter": str, "duration_ms": int}
          }
        A failed fetch scores 0 and never blocks the other protocols.
        """
        start = time.perf_counter()
        now = now or datetime.now(timezone.utc)

        with ThreadPoolExecutor(max_workers=len(PROTOCOLS)) as pool:
            futures = {name: pool.submit(fetch) for name, fetch in self._fetchers().items()}

        protocols: Dict[str, Dict[str, Any]] = {}
        for name, future in futures.items():
            metrics = None
            try:
                metrics = future.result()
                source = {"ok": True, "data": asdict(metrics), "error": None}
            except Exception as exc:  # noqa: BLE001 - we want to capture and return the error
                logger.warning("Fetch for %s failed: %s", name, exc)
                source = {"ok": False, "data": None, "error": str(exc)}

            risk = evaluate(metrics, now)
            self.last_scores[name] = risk.value
            protocols[name] = {"source": source, **risk.to_dict()}

        global_score = aggregate_score(p["score"] for p in protocols.values())
        snapshot = {
            "timestamp": now.isoformat(),
            "protocols": protocols,
            "global": {"score": global_score, "status": status_from_score(global_score).value},
            "meta": {
                "adapter": getattr(self.adapter, "name", "unknown"),
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        }
        return snapshot

    # --- Polling loop ---
    def run(
        self,
        stop_event: threading.Event,
        on_snapshot: Optional[Callable[[Dict[str, Any]], None]] = None,
    ) -> None:
        """Poll until stop_event is set. A failing cycle is logged and the loop continues."""
        logger.info("Starting monitoring loop (every %ss)", self.polling_interval_sec)
        while not stop_event.is_set():
            try:
                snap = self.snapshot()
                if on_snapshot is not None:
                    on_snapshot(snap)
            except Exception:  # noqa: BLE001 - keep polling after a bad cycle
                logger.exception("Poll cycle failed")
            stop_event.wait(self.polling_interval_sec)
        logger.info("Monitoring loop stopped")
