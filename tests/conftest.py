# tests/conftest.py
import time
import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from phone_tracker.config import ScrapingConfig, Settings, default_marketplaces
from phone_tracker.context import create_context
from phone_tracker.db import init_db, make_session_factory
from phone_tracker.scrapers.base import DelayPolicy
from phone_tracker.services import PhoneService


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        scraping=ScrapingConfig(delay_min_ms=0, delay_max_ms=0, max_retries=3, request_timeout_ms=1000),
        marketplaces=default_marketplaces(),
        user_agents=["test-agent/1.0"],
        timezone="UTC",
    )


@pytest.fixture
def engine():
    # one shared in-memory database across threads
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def phone_service(session_factory):
    return PhoneService(session_factory)


@pytest.fixture
def no_sleep(monkeypatch):
    calls = []
    monkeypatch.setattr(time, "sleep", lambda s: calls.append(s))
    return calls


@pytest.fixture
def delays():
    pauses = []
    return DelayPolicy(0, 0, sleep=pauses.append)


class FakePage:
    """Stands in for a Playwright page; serves canned HTML per URL."""

    def __init__(self, pages=None, heights=None):
        self.pages = pages or {}
        self.heights = list(heights or [])
        self.visited = []
        self.url = "about:blank"
        self.closed = False
        self.filled = {}
        self.clicked = []
        self._html = ""

    def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        self.url = url
        html = self.pages.get(url, "<html><body></body></html>")
        if isinstance(html, Exception):
            raise html
        self._html = html

    def content(self):
        return self._html

    def wait_for_selector(self, selector, timeout=None):
        return None

    def wait_for_load_state(self, state=None, timeout=None):
        return None

    def fill(self, selector, value):
        self.filled[selector] = value

    def click(self, selector):
        self.clicked.append(selector)

    def evaluate(self, script):
        return self.heights.pop(0) if self.heights else 0

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, page):
        self.page = page
        self.closed = False

    def new_page(self):
        return self.page

    def close(self):
        self.closed = True


@pytest.fixture
def fake_page_factory():
    return FakePage


@pytest.fixture
def fake_session_factory():
    return FakeSession


def listing(model, brand="Samsung", marketplace="ouedkniss", price=50000.0, **extra):
    item = {
        "title": model,
        "model": model,
        "brand": brand,
        "category": "smartphone",
        "price": price,
        "currency": "DZD",
        "condition": "used",
        "image_url": None,
        "source_url": None,
        "marketplace": marketplace,
        "listing_count": 1,
        "stock_level": 1,
        "availability_status": "in_stock",
    }
    item.update(extra)
    return item


@pytest.fixture
def make_listing():
    return listing


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def notify_success(self, marketplace, stats):
        self.events.append(("success", marketplace, dict(stats)))

    def notify_failure(self, marketplace, error):
        self.events.append(("failure", marketplace, error))

    def notify_data_quality_issue(self, issue):
        self.events.append(("data_quality", issue["type"], dict(issue)))


@pytest.fixture
def context(settings, engine):
    ctx = create_context(settings, engine=engine, create_tables=False)
    ctx.notifier = RecordingNotifier()
    yield ctx
    ctx.close()
