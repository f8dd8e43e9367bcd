import asyncio
import os
import sys
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

# Keep log files out of the working tree; main.setup_logging() reads LOG_DIR.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="folder-stream-logs-"))
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import httpx
import pytest

from settings import ServiceSettings


# ============================================================
# FAKE BROWSER
# ============================================================

class FakeResponse:
    """Stands in for a Playwright Response."""

    def __init__(self, body: Any = None, content_type: str = "application/json",
                 url: str = "https://www.terabox.com/api/list", error: Optional[Exception] = None):
        self.body = body
        self.url = url
        self.error = error
        self._content_type = content_type

    @property
    def headers(self) -> Dict[str, str]:
        return {"content-type": self._content_type}

    async def json(self):
        if self.error is not None:
            raise self.error
        return self.body


class FakePage:
    def __init__(self, responses=None, late_responses=None, goto_error=None):
        self.responses = list(responses or [])
        self.late_responses = list(late_responses or [])
        self.goto_error = goto_error
        self.handlers: Dict[str, List[Callable]] = {}
        self.goto_calls: List[dict] = []

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def remove_listener(self, event, handler):
        self.handlers[event].remove(handler)

    def _emit(self, response):
        for handler in list(self.handlers.get("response", [])):
            handler(response)

    async def goto(self, url, wait_until=None, timeout=None):
        self.goto_calls.append({"url": url, "wait_until": wait_until, "timeout": timeout})
        for r in self.responses:
            self._emit(r)
        if self.goto_error is not None:
            raise self.goto_error
        # Delivered while the crawler sits in its settle window
        loop = asyncio.get_running_loop()
        for r in self.late_responses:
            loop.call_soon(self._emit, r)


class FakeContext:
    def __init__(self, page: FakePage):
        self.page = page
        self.cookies: List[dict] = []

    async def add_cookies(self, cookies):
        self.cookies.extend(cookies)

    async def new_page(self):
        return self.page


class FakeBrowser:
    def __init__(self, page: FakePage):
        self.context = FakeContext(page)
        self.close_count = 0

    async def new_context(self):
        return self.context


def make_launcher(browser: FakeBrowser):
    @asynccontextmanager
    async def launcher(settings):
        try:
            yield browser
        finally:
            browser.close_count += 1
    return launcher


@pytest.fixture
def fast_settings() -> ServiceSettings:
    return ServiceSettings(settle_seconds=0.01, navigation_timeout_ms=1000, http_timeout=5.0)


@pytest.fixture
def fake_browser():
    def _factory(**page_kwargs) -> FakeBrowser:
        return FakeBrowser(FakePage(**page_kwargs))
    return _factory


# ============================================================
# FAKE UPSTREAM
# ============================================================

class UpstreamRecorder:
    """MockTransport handler that records requests and answers from a callable."""

    def __init__(self, respond: Callable[[httpx.Request], httpx.Response]):
        self.respond = respond
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self), follow_redirects=True)


@pytest.fixture
def upstream():
    def _factory(respond) -> UpstreamRecorder:
        return UpstreamRecorder(respond)
    return _factory


def list_body(n: int, start: int = 0, with_url: bool = False) -> dict:
    records = []
    for i in range(start, start + n):
        rec = {"fs_id": i, "server_filename": f"file{i}.bin", "size": i * 10}
        if with_url:
            rec["dlink"] = f"https://d.terabox.com/file/{i}"
        records.append(rec)
    return {"errno": 0, "list": records}
