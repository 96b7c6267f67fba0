# phone_tracker/scrapers/extract.py
"""Turn rendered page HTML into raw listing dicts using a ``SelectorSet``."""
import re
from bs4 import BeautifulSoup
from .selectors import ANTI_BOT_SIGNATURES


def parse_html(html):
    return BeautifulSoup(html or "", "lxml")


def looks_blocked(html, signatures=ANTI_BOT_SIGNATURES):
    return any(sig in (html or "") for sig in signatures)


def select_listings(soup, strategies):
    """Return ``(elements, selector)`` for the first strategy with a match."""
    for selector in strategies:
        elements = soup.select(selector)
        if elements:
            return elements, selector
    return [], None


def _text(el):
    return el.get_text(" ", strip=True) if el is not None else ""


def _pick(item, selector):
    if not selector:
        return None
    # the listing element itself may be the anchor/image we are after
    if item.name and item.css.match(selector):
        return item
    return item.select_one(selector)


def _image_src(img):
    if img is None:
        return ""
    return img.get("src") or img.get("data-src") or img.get("data-lazy-src") or ""


def _price_text(item, selectors):
    el = item.select_one(selectors.price) if selectors.price else None
    if el is not None:
        return _text(el)
    if selectors.price_pattern:
        pattern = re.compile(selectors.price_pattern)
        for span in item.find_all("span"):
            text = _text(span)
            if pattern.search(text):
                return text
    return ""


def extract_items(html, selectors):
    """Return ``(items, used_selector)``; items without a usable title are skipped."""
    soup = parse_html(html)
    elements, used = select_listings(soup, selectors.listing)
    items = []
    for el in elements:
        title = _text(el.select_one(selectors.title))
        if len(title) < selectors.min_title_length:
            continue
        link_el = _pick(el, selectors.link)
        items.append({
            "title": title,
            "price": _price_text(el, selectors),
            "link": link_el.get("href", "") if link_el is not None else "",
            "image": _image_src(_pick(el, selectors.image)),
            "location": _text(el.select_one(selectors.location)) if selectors.location else "",
        })
    return items, used
