# phone_tracker/scrapers/ouedkniss.py
from playwright.sync_api import TimeoutError as PWTimeout
from ..normalize import make_listing
from ..utils import logger
from .base import AntiBotDetected, DelayPolicy, SELECTOR_TIMEOUT_MS, fetch_page, run_scrape
from .extract import extract_items, looks_blocked
from .selectors import OUEDKNISS_SEARCH
from .session import BrowserSession


class OuedknissScraper:
    """General phone search, walking the first result pages."""

    name = "ouedkniss"
    max_pages = 5
    settle_seconds = 5

    def __init__(self, settings, session=None, delays=None, selectors=OUEDKNISS_SEARCH):
        self.config = settings.marketplaces[self.name]
        self.marketplace = self.config.marketplace
        self.scraping = settings.scraping
        self.session = session or BrowserSession(settings.scraping, settings.user_agents)
        self.delays = delays or DelayPolicy.from_config(settings.scraping)
        self.selectors = selectors

    def page_url(self, page_num):
        if page_num == 1:
            return self.config.search_url
        return f"{self.config.search_url}?page={page_num}"

    def _wait_for_listings(self, page):
        try:
            page.wait_for_selector(", ".join(self.selectors.listing), timeout=SELECTOR_TIMEOUT_MS)
        except PWTimeout:
            logger.debug("No listing selector appeared within %sms", SELECTOR_TIMEOUT_MS)

    def scrape_page(self, page, page_num):
        html = fetch_page(page, self.page_url(page_num), tries=self.scraping.max_retries)
        self._wait_for_listings(page)
        self.delays.pause(self.settle_seconds)
        html = page.content() or html
        if looks_blocked(html):
            raise AntiBotDetected(f"anti-bot protection detected on page {page_num}")
        items, used = extract_items(html, self.selectors)
        logger.info("Page %d: selector %s matched %d listings", page_num, used, len(items))
        return [
            make_listing(
                item["title"], item["price"], self.marketplace, self.config.base_url,
                image=item["image"], link=item["link"], location=item["location"] or None,
            )
            for item in items
        ]

    def scrape(self):
        phones = []
        page = self.session.new_page()
        try:
            for page_num in range(1, self.max_pages + 1):
                logger.info("Scraping Ouedkniss page %d...", page_num)
                try:
                    listings = self.scrape_page(page, page_num)
                except AntiBotDetected as e:
                    logger.warning("Stopping: %s", e)
                    break
                except Exception as e:
                    logger.error("Error on page %d: %s", page_num, e)
                    continue
                if not listings:
                    logger.info("No listings found on page %d", page_num)
                    break
                phones.extend(listings)
                if page_num < self.max_pages:
                    self.delays.random_delay()
        finally:
            page.close()
        return phones

    def run(self):
        return run_scrape(self.marketplace, self.scrape, self.session.close)
