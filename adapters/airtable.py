from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import requests

from logging_config import get_logger
from reporting.tax_export import period_start

logger = get_logger(__name__)

AIRTABLE_API_BASE = "https://api.airtable.com/v0"


class AirtableAdapter:
    """
    Airtable record store: yield logs, watchlist and user profile tables.

    Without credentials every read returns an empty result.
    """

    name = "airtable"

    def __init__(
        self,
        api_key: Optional[str],
        base_id: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 15,
        api_base: str = AIRTABLE_API_BASE,
    ) -> None:
        self.api_key = api_key
        self.base_id = base_id
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.base_id)

    # --- HTTP helpers ---
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _url(self, table: str) -> str:
        return f"{self.api_base}/{self.base_id}/{table}"

    def _list_records(self, table: str, params: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        resp = self.session.get(self._url(table), headers=self._headers(), params=params, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        records = data.get("records")
        if not isinstance(records, list):
            raise RuntimeError(f"Airtable {table} response has no records list: {data}")
        return records

    # --- Tables ---
    def fetch_yield_logs(self, period: str = "all", now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        if not self.configured:
            logger.warning("Airtable credentials not configured; no yield logs")
            return []

        params: Optional[Dict[str, str]] = None
        start = period_start(period, now or datetime.now(timezone.utc))
        if start is not None:
            params = {"filterByFormula": f"AND(IS_AFTER({{Timestamp}},'{start.isoformat()}'))"}

        records = self._list_records("YieldLogs", params)
        logs = [{"id": r.get("id"), **(r.get("fields") or {})} for r in records]
        logger.info("Fetched %d yield log record(s) for period '%s'", len(logs), period)
        return logs

    def fetch_watchlist(self) -> List[Dict[str, Any]]:
        if not self.configured:
            logger.warning("Airtable credentials not configured; empty watchlist")
            return []
        return [r.get("fields") or {} for r in self._list_records("Watchlist")]

    def fetch_user_profile(self) -> Dict[str, Any]:
        if not self.configured:
            logger.warning("Airtable credentials not configured; empty profile")
            return {}
        records = self._list_records("UserProfile")
        return (records[0].get("fields") or {}) if records else {}

    def sync_watchlist(self, items: Iterable[Dict[str, Any]], now: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        """Push watchlist entries ({"protocol", "amount"}) as new active records."""
        if not self.configured:
            logger.warning("Airtable credentials not configured; watchlist not synced")
            return None

        added = (now or datetime.now(timezone.utc)).isoformat()
        payload = {
            "records": [
                {
                    "fields": {
                        "Protocol": item["protocol"],
                        "Amount": item["amount"],
                        "DateAdded": added,
                        "Status": "Active",
                    }
                }
                for item in items
            ]
        }
        resp = self.session.post(self._url("Watchlist"), headers=self._headers(), json=payload, timeout=self.timeout)
        resp.raise_for_status()
        logger.info("Synced %d watchlist item(s)", len(payload["records"]))
        return resp.json()
