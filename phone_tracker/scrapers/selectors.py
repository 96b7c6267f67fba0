# phone_tracker/scrapers/selectors.py
"""CSS selector strategies for each marketplace.

``listing`` is an ordered fallback list: the first selector matching at
least one element is used for the whole page. New strategies are added
here, scrapers never hard-code selectors.
"""
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class SelectorSet:
    listing: Tuple[str, ...]
    title: str
    price: str
    link: str
    image: str = "img"
    location: str = ""
    min_title_length: int = 1
    # regex tried against <span> texts when ``price`` matches nothing
    price_pattern: str = ""


OUEDKNISS_SEARCH = SelectorSet(
    listing=(
        ".card-container .o-announ",
        "article.o-announ",
        ".classified-card",
        "[data-id]",
        'a[href*="/annonce/"]',
        ".css-1sw7q4x",
        '[class*="listing"]',
        '[class*="card"]',
    ),
    title='.card-title a, h3 a, .title, [class*="title"]',
    price='.price, [class*="price"]',
    link='a[href*="/annonce/"], a',
    location='.card-address, [class*="location"], [class*="address"]',
)

OUEDKNISS_STORE = SelectorSet(
    listing=(
        '[class*="card"]',
        ".o-announ",
        "article",
        "[data-id]",
    ),
    title=OUEDKNISS_SEARCH.title,
    price=OUEDKNISS_SEARCH.price,
    link=OUEDKNISS_SEARCH.link,
    location=OUEDKNISS_SEARCH.location,
    min_title_length=4,
)

JUMIA_CATALOG = SelectorSet(
    listing=("article.prd", ".prd"),
    title=".name, .info h3 a",
    price=".prc, .price",
    link="a.core, a",
    image="img.img, img",
)

JUMIA_NEXT_PAGE = 'a[aria-label="Next Page"]'

FACEBOOK_FEED = SelectorSet(
    listing=(
        'div[data-testid="marketplace_feed"] > div',
        'div[role="list"] > div',
        'a[href*="/marketplace/item/"]',
    ),
    title='[role="heading"], span > span',
    price='span[aria-label*="Price"]',
    link='a[href*="/marketplace/item/"]',
    price_pattern=r"\b(?:DZD|DA)\b",
)

ANTI_BOT_SIGNATURES = ("captcha", "blocked", "Access Denied")
