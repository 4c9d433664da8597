"""Application configuration utilities."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from os import getenv
from typing import Optional

from dotenv import load_dotenv

from exit_optimizer.models import ExitConfig

# Make .env values visible before the first getter runs.
load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable container for service-level configuration."""

    n8n_url: str = "https://your-n8n-instance.com"
    airtable_key: Optional[str] = None
    airtable_base_id: Optional[str] = None
    polling_interval_sec: float = 30.0
    http_timeout_sec: float = 15.0
    agent_model: str = "gemini-pro"
    user_location: str = "KE"

    @property
    def airtable_configured(self) -> bool:
        return bool(self.airtable_key and self.airtable_base_id)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return settings derived from the current environment."""

    return Settings(
        n8n_url=getenv("N8N_URL", "https://your-n8n-instance.com").rstrip("/"),
        airtable_key=getenv("AIRTABLE_KEY") or None,
        airtable_base_id=getenv("AIRTABLE_BASE_ID") or None,
        polling_interval_sec=float(getenv("POLLING_INTERVAL_SEC", "30")),
        http_timeout_sec=float(getenv("HTTP_TIMEOUT_SEC", "15")),
        agent_model=getenv("AGENT_MODEL", "gemini-pro"),
        user_location=getenv("USER_LOCATION", "KE").upper(),
    )


def exit_config_from_env() -> ExitConfig:
    """ExitConfig with fee/yield defaults overridable per deployment."""

    defaults = ExitConfig()
    return ExitConfig(
        slippage_rate=float(getenv("EXIT_SLIPPAGE_RATE", str(defaults.slippage_rate))),
        gas_cost=float(getenv("EXIT_GAS_COST", str(defaults.gas_cost))),
        daily_yield_rate=float(getenv("EXIT_DAILY_YIELD_RATE", str(defaults.daily_yield_rate))),
    )
