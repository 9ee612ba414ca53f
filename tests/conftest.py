import httpx
import pytest

from inspector.core.config import settings


class MockCDN:
    """Routes `host/path` keys to canned responses and records every request."""

    def __init__(self, routes: dict[str, tuple[int, object]] | None = None):
        self.routes = routes or {}
        self.calls: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        key = f"{request.url.host}{request.url.path}"
        self.calls.append(key)
        if key not in self.routes:
            return httpx.Response(404, text="not found", request=request)
        status, body = self.routes[key]
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body, request=request)
        return httpx.Response(status, text=str(body), request=request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "log_enabled", False)


@pytest.fixture
def mock_cdn():
    return MockCDN
