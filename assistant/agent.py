import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence

from adapters.abstract import AgentAdapter
from logging_config import get_logger

logger = get_logger(__name__)

MAX_HISTORY_MESSAGES = 10
NO_RESPONSE_TEXT = "No response from agent"

SYSTEM_PROMPT_TEMPLATE = """You are Nairobi, an expert DeFi risk advisor for YieldGuard AI. You monitor Ethena (sUSDe), Falcon (LST), and Pendle (yield tokens).

USER CONTEXT:
- Risk Profile: {risk_tolerance}
- Total Exposure: ${total_exposure}
- Location: {location}

CURRENT WATCHLIST:
{watchlist}

INSTRUCTIONS:
1. Always provide specific, actionable advice based on their positions
2. Reference the PulseScore when discussing risk (0-100 scale, 75+ is Safe)
3. Warn about de-peg risks for sUSDe exposure
4. Check cooldown windows for Falcon positions (7-day lock-up)
5. Alert if Pendle maturity is approaching (<7 days)
6. Use KES/USD pricing context when user is in Kenya
7. Be concise but thorough - prioritize actionable insights

TONE: Professional but approachable. Confident but humble about limitations."""


class AssistantBusyError(RuntimeError):
    """Raised when a message arrives while the previous one is still in flight."""


def build_system_context(profile: Mapping[str, Any], watchlist: Sequence[Mapping[str, Any]]) -> str:
    summary = "\n".join(f"- {item.get('Protocol')}: {item.get('Amount')}" for item in watchlist)
    return SYSTEM_PROMPT_TEMPLATE.format(
        risk_tolerance=profile.get("RiskTolerance") or "Moderate",
        total_exposure=profile.get("TotalExposure") or "0",
        location=profile.get("Location") or "Unknown",
        watchlist=summary or "No positions tracked",
    )


def trim_history(history: Sequence[Dict[str, Any]], max_messages: int = MAX_HISTORY_MESSAGES) -> List[Dict[str, Any]]:
    """Keep the most recent messages to respect the agent's context window."""
    if max_messages <= 0:
        return []
    return list(history[-max_messages:])


def extract_reply(data: Mapping[str, Any]) -> str:
    return data.get("response") or data.get("message") or NO_RESPONSE_TEXT


class AssistantAgent:
    """
    One chat session proxied to the external agent workflow.
    """

    def __init__(
        self,
        adapter: AgentAdapter,
        model: str = "gemini-pro",
        profile: Optional[Dict[str, Any]] = None,
        watchlist: Optional[List[Dict[str, Any]]] = None,
        max_history: int = MAX_HISTORY_MESSAGES,
    ) -> None:
        self.adapter = adapter
        self.model = model
        self.profile = profile or {}
        self.watchlist = watchlist or []
        self.max_history = max_history
        self.history: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def _append(self, role: str, content: str) -> None:
        self.history.append(
            {"role": role, "content": content, "timestamp": datetime.now(timezone.utc).isoformat()}
        )
        self.history = trim_history(self.history, self.max_history)

    def send_message(self, text: str) -> Dict[str, Any]:
        """
        Send a user message and record both turns.

        Returns {"ok": bool, "reply": str, "error": str | None}. Transport
        failures are reported in the result rather than raised.
        """
        if not self._lock.acquire(blocking=False):
            raise AssistantBusyError("Already processing a message")

        try:
            self._append("user", text)
            payload = {
                "userMessage": text,
                "systemContext": build_system_context(self.profile, self.watchlist),
                "conversationHistory": list(self.history),
                "watchlist": self.watchlist,
                "userProfile": self.profile,
                "model": self.model,
            }
            try:
                data = self.adapter.send_agent_message(payload)
            except Exception as exc:  # noqa: BLE001 - we want to capture and return the error
                logger.error("Agent request failed: %s", exc)
                return {
                    "ok": False,
                    "reply": f"Error: Unable to process your request. {exc}",
                    "error": str(exc),
                }

            reply = extract_reply(data)
            self._append("assistant", reply)
            return {"ok": True, "reply": reply, "error": None}
        finally:
            self._lock.release()

    def clear(self) -> None:
        self.history = []
