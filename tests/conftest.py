from datetime import datetime, timedelta, timezone

import pytest
import requests

from budget_core import backup
from budget_core.services import LedgerEngine
from budget_core.storage import JSONStorage
from offline_cache import CacheController, CacheManifest, CacheStorage, NetworkFetcher

ASSETS = ("/", "/index.html", "/app.js")


class FixedClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class StubResponse:
    def __init__(self, status_code=200, content=b"", headers=None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {"Content-Type": "text/plain"}


class StubSession:
    """Stands in for ``requests.Session``; serves a fixed route table."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []
        self.offline = False

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, timeout))
        if self.offline or url not in self.routes:
            raise requests.ConnectionError(f"cannot reach {url}")
        return self.routes[url]


def make_controller(cache_storage, session, tag="v2"):
    fetcher = NetworkFetcher("http://app.test/", session=session, timeout=5)
    return CacheController(CacheManifest(tag=tag, assets=ASSETS), cache_storage, fetcher)


@pytest.fixture
def clock():
    # Day 10 of a 30-day month.
    return FixedClock(datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage(tmp_path):
    return JSONStorage(tmp_path / "data")


@pytest.fixture
def engine(storage, clock):
    return LedgerEngine(storage, clock=clock)


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch):
    monkeypatch.setattr(backup, "KDF_ITERATIONS", 1_000)


@pytest.fixture
def session():
    return StubSession({
        "http://app.test/": StubResponse(content=b"<html>root</html>"),
        "http://app.test/index.html": StubResponse(
            content=b"<html>index</html>", headers={"Content-Type": "text/html"}
        ),
        "http://app.test/app.js": StubResponse(content=b"console.log(1)"),
    })


@pytest.fixture
def cache_storage(tmp_path):
    return CacheStorage(tmp_path / "cache")
