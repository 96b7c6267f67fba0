# phone_tracker/scrapers/ouedkniss_stores.py
from ..normalize import make_listing
from ..utils import logger
from .base import DelayPolicy, fetch_page, run_scrape
from .extract import extract_items
from .selectors import OUEDKNISS_STORE
from .session import BrowserSession


class OuedknissStoresScraper:
    """Crawls a fixed list of phone stores hosted on Ouedkniss."""

    name = "ouedkniss_stores"
    max_pages_per_store = 3
    settle_seconds = 3
    store_delay_seconds = 5

    def __init__(self, settings, session=None, delays=None, selectors=OUEDKNISS_STORE):
        self.config = settings.marketplaces[self.name]
        self.marketplace = self.config.marketplace
        self.scraping = settings.scraping
        self.stores = list(self.config.stores)
        self.session = session or BrowserSession(settings.scraping, settings.user_agents)
        self.delays = delays or DelayPolicy.from_config(settings.scraping)
        self.selectors = selectors

    def scrape_store(self, page, store):
        phones = []
        logger.info("Scraping store: %s (ID: %s)", store.name, store.id)
        for page_num in range(1, self.max_pages_per_store + 1):
            url = store.url if page_num == 1 else f"{store.url}?page={page_num}"
            try:
                fetch_page(page, url, tries=self.scraping.max_retries)
                self.delays.pause(self.settle_seconds)
                items, _ = extract_items(page.content(), self.selectors)
            except Exception as e:
                logger.error("Error on page %d for %s: %s", page_num, store.name, e)
                break
            if not items:
                logger.info("No more items on page %d for %s", page_num, store.name)
                break
            for item in items:
                phones.append(make_listing(
                    item["title"], item["price"], self.marketplace, self.config.base_url,
                    image=item["image"], link=item["link"], location=item["location"] or None,
                    stock_level=5, seller_name=store.name, seller_type="store",
                ))
            logger.info("Page %d: found %d items from %s", page_num, len(items), store.name)
            if page_num < self.max_pages_per_store:
                self.delays.random_delay()
        return phones

    def scrape(self):
        all_phones = []
        page = self.session.new_page()
        try:
            for index, store in enumerate(self.stores):
                all_phones.extend(self.scrape_store(page, store))
                if index < len(self.stores) - 1:
                    self.delays.pause(self.store_delay_seconds)
        finally:
            page.close()
        logger.info("Total items scraped from all stores: %d", len(all_phones))
        return all_phones

    def run(self):
        return run_scrape(self.marketplace, self.scrape, self.session.close)
