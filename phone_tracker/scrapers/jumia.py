# phone_tracker/scrapers/jumia.py
from ..normalize import make_listing
from ..utils import logger
from .base import DelayPolicy, run_scrape
from .extract import extract_items, parse_html
from .http import HttpClient
from .selectors import JUMIA_CATALOG, JUMIA_NEXT_PAGE


def has_next_page(html, selector=JUMIA_NEXT_PAGE):
    button = parse_html(html).select_one(selector)
    return button is not None and "disabled" not in (button.get("class") or [])


class JumiaScraper:
    """Paginated retail catalog; served as plain HTML, no browser needed."""

    name = "jumia"
    max_pages = 10

    def __init__(self, settings, http=None, delays=None, selectors=JUMIA_CATALOG):
        self.config = settings.marketplaces[self.name]
        self.marketplace = self.config.marketplace
        self.http = http or HttpClient(settings.scraping, settings.user_agents)
        self.delays = delays or DelayPolicy.from_config(settings.scraping)
        self.selectors = selectors

    def page_url(self, page_num):
        return f"{self.config.search_url}?page={page_num}"

    def scrape(self):
        phones = []
        for page_num in range(1, self.max_pages + 1):
            logger.info("Scraping Jumia page %d...", page_num)
            try:
                html = self.http.get_text(self.page_url(page_num))
                items, _ = extract_items(html, self.selectors)
            except Exception as e:
                logger.error("Error on page %d: %s", page_num, e)
                continue
            for item in items:
                # retail catalog: new items, medium stock assumed
                phones.append(make_listing(
                    item["title"], item["price"], self.marketplace, self.config.base_url,
                    condition="new", image=item["image"], link=item["link"], stock_level=5,
                ))
            logger.info("Page %d: found %d listings", page_num, len(items))
            if not items or not has_next_page(html):
                logger.info("No more pages available")
                break
            if page_num < self.max_pages:
                self.delays.random_delay()
        return phones

    def run(self):
        return run_scrape(self.marketplace, self.scrape, self.http.close)
