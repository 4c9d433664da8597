from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import pytest
import requests


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self) -> Any:
        return self.payload


class FakeSession:
    """Stands in for requests.Session: canned responses keyed by URL suffix."""

    def __init__(self) -> None:
        self.routes: Dict[str, FakeResponse] = {}
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []

    def route(self, suffix: str, payload: Any, status_code: int = 200) -> None:
        self.routes[suffix] = FakeResponse(payload, status_code)

    def _dispatch(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        for suffix, response in self.routes.items():
            if url.endswith(suffix):
                return response
        raise requests.ConnectionError(f"no route for {url}")

    def post(self, url: str, json: Optional[Any] = None, **kwargs: Any) -> FakeResponse:
        return self._dispatch("POST", url, json=json, **kwargs)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self._dispatch("GET", url, **kwargs)


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()
