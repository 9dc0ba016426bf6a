"""Shared fixtures: an in-process stand-in for aiohttp.ClientSession."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import pytest

from shareaudit.adapters.graph.client import GraphClient
from shareaudit.config import reset_settings

BASE = "https://graph.test/v1.0"


class FakeResponse:
    """Just enough of aiohttp.ClientResponse for GraphClient."""

    def __init__(
        self,
        status: int = 200,
        body: Any = None,
        *,
        headers: Optional[Dict[str, str]] = None,
        text: Optional[str] = None,
    ):
        self.status = status
        self.headers = headers or {}
        if text is not None:
            self._text = text
        else:
            self._text = "" if body is None else json.dumps(body)

    async def text(self) -> str:
        return self._text

    async def json(self) -> Any:
        return json.loads(self._text)

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False


class HangingResponse(FakeResponse):
    """A response whose body never arrives."""

    async def text(self) -> str:
        await asyncio.Event().wait()
        return ""


@dataclass
class Call:
    method: str
    url: str
    headers: Dict[str, str]
    body: Any


class FakeSession:
    """Scripted responses keyed by (method, url); records every call.

    Responses registered for a route are served in order and the last one
    repeats. Exceptions in the script are raised from ``request``.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[Call] = []

    def add(self, method: str, url: str, *responses: Any) -> None:
        self.routes.setdefault((method.upper(), url), []).extend(responses)

    def request(self, method, url, headers=None, json=None, timeout=None):
        self.calls.append(Call(method, url, dict(headers or {}), json))
        script = self.routes.get((method.upper(), url))
        if not script:
            return FakeResponse(404, {"error": {"code": "itemNotFound", "message": f"no route {url}"}})
        response = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(response, BaseException):
            raise response
        return response

    def calls_to(self, method: str, url: Optional[str] = None) -> List[Call]:
        return [
            c for c in self.calls
            if c.method == method.upper() and (url is None or c.url == url)
        ]


def page(values: List[Dict[str, Any]], next_link: Optional[str] = None) -> FakeResponse:
    body: Dict[str, Any] = {"value": values}
    if next_link:
        body["@odata.nextLink"] = next_link
    return FakeResponse(200, body)


def anonymous_permission(permission_id: str, link_type: str = "view", **link: Any) -> Dict[str, Any]:
    return {
        "id": permission_id,
        "roles": ["read"],
        "link": {
            "scope": "anonymous",
            "type": link_type,
            "webUrl": f"https://contoso.sharepoint.com/:w:/g/{permission_id}",
            **link,
        },
    }


def organization_permission(permission_id: str) -> Dict[str, Any]:
    return {
        "id": permission_id,
        "roles": ["read"],
        "link": {"scope": "organization", "type": "view"},
    }


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    for name in ("SHAREAUDIT_DRY_RUN", "SHAREAUDIT_SITE_FILTER", "SHAREAUDIT_BATCH_SIZE"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)
    return _sleep


@pytest.fixture
def client(session, fake_sleep) -> GraphClient:
    async def token() -> str:
        return "test-token"

    return GraphClient(
        session,
        token,
        base_url=BASE,
        max_retries=3,
        base_delay=1.0,
        max_delay=60.0,
        timeout=5,
        sleep=fake_sleep,
    )
