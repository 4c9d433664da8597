from __future__ import annotations

import pytest
import requests

from assistant.agent import (
    AssistantAgent,
    AssistantBusyError,
    build_system_context,
    extract_reply,
    trim_history,
)


class _AgentAdapter:
    name = "fake"

    def __init__(self, reply=None, error=None) -> None:
        self.reply = reply if reply is not None else {"response": "Hold your sUSDe."}
        self.error = error
        self.payloads = []

    def send_agent_message(self, payload):
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return self.reply


def test_system_context_includes_profile_and_watchlist() -> None:
    context = build_system_context(
        {"RiskTolerance": "Aggressive", "TotalExposure": 5000, "Location": "Nairobi"},
        [{"Protocol": "Ethena", "Amount": 1200}, {"Protocol": "Pendle", "Amount": 300}],
    )
    assert "Risk Profile: Aggressive" in context
    assert "Total Exposure: $5000" in context
    assert "- Ethena: 1200\n- Pendle: 300" in context


def test_system_context_defaults() -> None:
    context = build_system_context({}, [])
    assert "Risk Profile: Moderate" in context
    assert "Location: Unknown" in context
    assert "No positions tracked" in context


def test_trim_history_keeps_latest_messages() -> None:
    history = [{"content": str(i)} for i in range(15)]
    trimmed = trim_history(history)
    assert [m["content"] for m in trimmed] == [str(i) for i in range(5, 15)]
    assert trim_history(history, 0) == []


def test_extract_reply_fallbacks() -> None:
    assert extract_reply({"response": "a", "message": "b"}) == "a"
    assert extract_reply({"message": "b"}) == "b"
    assert extract_reply({}) == "No response from agent"


def test_send_message_records_both_turns() -> None:
    adapter = _AgentAdapter()
    agent = AssistantAgent(adapter, model="gpt-4", profile={"Location": "Kenya"})

    result = agent.send_message("Should I exit Falcon?")

    assert result == {"ok": True, "reply": "Hold your sUSDe.", "error": None}
    assert [m["role"] for m in agent.history] == ["user", "assistant"]
    payload = adapter.payloads[0]
    assert payload["userMessage"] == "Should I exit Falcon?"
    assert payload["model"] == "gpt-4"
    assert "Location: Kenya" in payload["systemContext"]
    assert payload["conversationHistory"][-1]["content"] == "Should I exit Falcon?"


def test_send_message_reports_transport_failure() -> None:
    agent = AssistantAgent(_AgentAdapter(error=requests.ConnectionError("refused")))

    result = agent.send_message("hello")

    assert result["ok"] is False
    assert result["reply"].startswith("Error: Unable to process your request.")
    assert result["error"] == "refused"
    assert [m["role"] for m in agent.history] == ["user"]


def test_concurrent_message_is_rejected() -> None:
    agent = AssistantAgent(_AgentAdapter())
    agent._lock.acquire()
    try:
        with pytest.raises(AssistantBusyError):
            agent.send_message("second")
    finally:
        agent._lock.release()


def test_clear_resets_history() -> None:
    agent = AssistantAgent(_AgentAdapter())
    agent.send_message("hi")
    agent.clear()
    assert agent.history == []


def test_history_is_capped_to_the_latest_turns() -> None:
    adapter = _AgentAdapter()
    agent = AssistantAgent(adapter)

    for i in range(51):
        agent.send_message(f"question {i}")

    assert len(agent.history) == 10
    assert agent.history[-2]["content"] == "question 50"
    assert agent.history[-1]["role"] == "assistant"
    assert len(adapter.payloads[-1]["conversationHistory"]) == 10
