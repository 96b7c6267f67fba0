# phone_tracker/scrapers/facebook.py
from ..normalize import make_listing
from ..utils import logger
from .base import DelayPolicy, NAVIGATION_TIMEOUT_MS, fetch_page, run_scrape
from .extract import extract_items
from .selectors import FACEBOOK_FEED
from .session import BrowserSession

LOGIN_URL = "https://www.facebook.com/login"
SCROLL_TO_BOTTOM = "() => { window.scrollTo(0, document.body.scrollHeight); return document.body.scrollHeight; }"


class FacebookScraper:
    """Marketplace feed that loads more listings as the page is scrolled.

    Works anonymously when logging in is impossible, with fewer results.
    """

    name = "facebook"
    max_scrolls = 20
    settle_seconds = 5
    scroll_wait_seconds = 3

    def __init__(self, settings, session=None, delays=None, selectors=FACEBOOK_FEED):
        self.config = settings.marketplaces[self.name]
        self.marketplace = self.config.marketplace
        self.scraping = settings.scraping
        self.session = session or BrowserSession(settings.scraping, settings.user_agents)
        self.delays = delays or DelayPolicy.from_config(settings.scraping)
        self.selectors = selectors
        self.logged_in = False

    def login(self, page):
        creds = self.config.credentials
        if creds is None or not creds.complete:
            logger.warning("Facebook credentials not configured. Skipping login.")
            return False
        try:
            logger.info("Logging into Facebook...")
            page.goto(LOGIN_URL, wait_until="networkidle", timeout=NAVIGATION_TIMEOUT_MS)
            page.fill("#email", creds.email)
            page.fill("#pass", creds.password)
            page.click('button[name="login"]')
            page.wait_for_load_state("networkidle", timeout=30000)
            if "checkpoint" in page.url or "login" in page.url:
                raise RuntimeError("verification required or invalid credentials")
        except Exception as e:
            logger.error("Facebook login failed: %s", e)
            return False
        logger.info("Successfully logged into Facebook")
        return True

    def search_url(self):
        return f"{self.config.search_url}?query=phone%20smartphone"

    def scrape(self):
        phones = []
        seen_urls = set()
        page = self.session.new_page()
        try:
            self.logged_in = self.login(page)
            logger.info("Navigating to Facebook Marketplace (logged in: %s)...", self.logged_in)
            fetch_page(page, self.search_url(), tries=self.scraping.max_retries)
            self.delays.pause(self.settle_seconds)

            previous_height = 0
            for scroll in range(1, self.max_scrolls + 1):
                logger.info("Scroll %d/%d...", scroll, self.max_scrolls)
                try:
                    items, _ = extract_items(page.content(), self.selectors)
                except Exception as e:
                    logger.error("Error extracting feed on scroll %d: %s", scroll, e)
                    items = []
                for item in items:
                    listing = make_listing(
                        item["title"], item["price"], self.marketplace, "https://www.facebook.com",
                        image=item["image"], link=item["link"],
                    )
                    url = listing["source_url"]
                    if not url or url in seen_urls:
                        continue
                    seen_urls.add(url)
                    phones.append(listing)

                current_height = page.evaluate(SCROLL_TO_BOTTOM)
                self.delays.pause(self.scroll_wait_seconds)
                if current_height == previous_height:
                    logger.info("Reached bottom of page")
                    break
                previous_height = current_height
                self.delays.random_delay()
        finally:
            page.close()
        logger.info("Facebook scraping completed: %d items", len(phones))
        return phones

    def run(self):
        self.logged_in = False
        return run_scrape(self.marketplace, self.scrape, self.session.close)
