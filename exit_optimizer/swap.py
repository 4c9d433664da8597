from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .models import ExitConfig

DEX_NAME = "uniswap-v4"
DEFAULT_TOKEN_OUT = "USDC"
SLIPPAGE_TOLERANCE = 0.005
DEADLINE_SECONDS = 300


def prepare_swap(
    amount: float,
    asset: str,
    wallet_address: str,
    config: Optional[ExitConfig] = None,
    token_out: str = DEFAULT_TOKEN_OUT,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Build the unsigned exact-input swap request for an instant exit.

    Signing and submission happen in the user's wallet, not here.
    """
    config = config or ExitConfig()
    now = now or datetime.now(timezone.utc)
    return {
        "dex": DEX_NAME,
        "operation": "EXACT_INPUT_SWAP",
        "token_in": asset,
        "token_out": token_out,
        "amount_in": amount,
        "min_amount_out": amount * (1 - SLIPPAGE_TOLERANCE),
        "recipient": wallet_address,
        "deadline": int(now.timestamp()) + DEADLINE_SECONDS,
        "payload": {
            "asset": asset,
            "amount": amount,
            "slippage_percent": SLIPPAGE_TOLERANCE * 100,
            "gas_estimate": config.gas_cost,
        },
    }
