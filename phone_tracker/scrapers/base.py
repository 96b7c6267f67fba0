# phone_tracker/scrapers/base.py
"""Pieces shared by every marketplace scraper.

A scraper is any object exposing ``name``, ``marketplace``, ``scrape()`` and
``run()``. The concrete scrapers compose the helpers below instead of
inheriting from a common base class.
"""
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol
from ..utils import logger, call_with_retry

NAVIGATION_TIMEOUT_MS = 60000
SELECTOR_TIMEOUT_MS = 10000


class ScraperError(Exception):
    pass


class SessionLaunchError(ScraperError):
    """The browser could not be started; the whole run is aborted."""


class AntiBotDetected(ScraperError):
    pass


@dataclass
class ScrapeResult:
    success: bool
    marketplace: str
    data: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None
    stats: Dict[str, Any] = field(default_factory=dict)

    @property
    def items_scraped(self) -> int:
        return int(self.stats.get("items_scraped") or 0)


class Scraper(Protocol):
    name: str
    marketplace: str

    def scrape(self) -> List[Dict[str, Any]]: ...

    def run(self) -> ScrapeResult: ...


class DelayPolicy:
    """Randomized pauses between requests."""

    def __init__(self, min_ms=2000, max_ms=5000, sleep: Callable[[float], None] = None):
        self.min_ms = min_ms
        self.max_ms = max_ms
        self._sleep = sleep

    @classmethod
    def from_config(cls, scraping, sleep=None):
        return cls(scraping.delay_min_ms, scraping.delay_max_ms, sleep=sleep)

    def next_delay_ms(self) -> int:
        return random.randint(self.min_ms, self.max_ms)

    def pause(self, seconds):
        if seconds <= 0:
            return
        (self._sleep or time.sleep)(seconds)

    def random_delay(self):
        delay = self.next_delay_ms()
        logger.debug("Waiting %sms before next request", delay)
        self.pause(delay / 1000.0)


def fetch_page(page, url, tries=3):
    """Navigate ``page`` to ``url``, retrying with exponential backoff."""
    def _goto():
        page.goto(url, wait_until="domcontentloaded", timeout=NAVIGATION_TIMEOUT_MS)
        return page.content()
    return call_with_retry(_goto, tries=tries, delay=2, backoff=2)


def run_scrape(marketplace, scrape, teardown) -> ScrapeResult:
    """Time ``scrape()`` and fold any outcome into a ``ScrapeResult``.

    ``teardown`` always runs, and no exception escapes.
    """
    start = time.monotonic()
    logger.info("Starting %s scraper...", marketplace)
    try:
        results = scrape()
        duration = int(time.monotonic() - start)
        logger.info("%s scraping completed: %d items in %ss", marketplace, len(results), duration)
        return ScrapeResult(
            success=True,
            marketplace=marketplace,
            data=results,
            stats={"items_scraped": len(results), "duration": duration},
        )
    except Exception as e:
        duration = int(time.monotonic() - start)
        logger.exception("%s scraping failed after %ss: %s", marketplace, duration, e)
        return ScrapeResult(
            success=False,
            marketplace=marketplace,
            error=str(e) or e.__class__.__name__,
            stats={"items_scraped": 0, "duration": duration},
        )
    finally:
        try:
            teardown()
        except Exception as e:
            logger.warning("Error releasing %s session: %s", marketplace, e)
