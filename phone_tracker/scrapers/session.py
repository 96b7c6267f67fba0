# phone_tracker/scrapers/session.py
"""Playwright browser lifecycle for one scraper instance."""
import json
import os
import random
from playwright.sync_api import sync_playwright
from ..utils import logger, retry
from .base import SessionLaunchError

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--window-size=1920,1080",
    "--disable-features=IsolateOrigins,site-per-process",
]

EXTRA_HEADERS = {
    "Accept-Language": "fr-FR,fr;q=0.9,en-US;q=0.8,en;q=0.7,ar;q=0.6",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Upgrade-Insecure-Requests": "1",
}

HIDE_WEBDRIVER = "Object.defineProperty(navigator, 'webdriver', { get: () => false });"


class BrowserSession:
    """Lazily launched, memoized Chromium browser.

    ``launcher`` is a callable returning a started browser; it defaults to
    Playwright's bundled Chromium.
    """

    def __init__(self, scraping, user_agents, launcher=None):
        self.scraping = scraping
        self.user_agents = user_agents
        self._launcher = launcher
        self._playwright = None
        self.browser = None

    def random_user_agent(self):
        return random.choice(self.user_agents)

    def _start_chromium(self):
        if self._playwright is None:
            self._playwright = sync_playwright().start()
        options = {"headless": self.scraping.headless, "args": LAUNCH_ARGS, "timeout": 60000}
        if self.scraping.proxy:
            options["proxy"] = {"server": self.scraping.proxy}
        return self._playwright.chromium.launch(**options)

    # sleeps 2s then 4s between the three attempts
    @retry(Exception, tries=3, delay=2, backoff=2)
    def _launch(self):
        logger.info("Launching browser...")
        return (self._launcher or self._start_chromium)()

    def acquire(self):
        if self.browser is not None:
            return self.browser
        try:
            self.browser = self._launch()
        except Exception as e:
            self._stop_playwright()
            raise SessionLaunchError(f"Failed to launch browser after 3 attempts: {e}") from e
        logger.info("Browser launched successfully")
        return self.browser

    def new_page(self):
        browser = self.acquire()
        context = browser.new_context(
            user_agent=self.random_user_agent(),
            viewport={"width": 1920, "height": 1080},
            locale="fr-FR",
            extra_http_headers=EXTRA_HEADERS,
        )
        context.add_init_script(HIDE_WEBDRIVER)
        self._load_cookies(context)
        return context.new_page()

    def _load_cookies(self, context):
        path = self.scraping.cookies_file
        if not path or not os.path.exists(path):
            return
        try:
            with open(path, "r", encoding="utf-8") as fh:
                context.add_cookies(json.load(fh))
        except Exception as e:
            logger.error("Failed loading cookies: %s", e)

    def _stop_playwright(self):
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None

    def close(self):
        if self.browser is not None:
            try:
                self.browser.close()
                logger.info("Browser closed")
            finally:
                self.browser = None
                self._stop_playwright()
        else:
            self._stop_playwright()
