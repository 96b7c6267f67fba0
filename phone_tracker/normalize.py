# phone_tracker/normalize.py
"""Text normalization shared by every marketplace scraper.

Titles on the supported marketplaces mix French and English, so every
keyword table below carries both. Rule order matters: the first rule that
matches wins, regardless of where the keyword appears in the text.
"""
import re
from typing import Optional
from urllib.parse import urljoin

CATEGORY_RULES = (
    ("tablet", ("tablet", "tablette")),
    ("feature_phone", ("feature phone", "téléphone basique")),
    ("accessory", ("accessoire", "accessory", "case", "charger")),
)

# "comme neuf" and "like new" always hit the new rule first; like_new only comes from "excellent"
CONDITION_RULES = (
    ("new", ("neuf", "new", "nouveau")),
    ("like_new", ("comme neuf", "like new", "excellent")),
    ("for_parts", ("pièces", "parts", "défectueux")),
)

BRANDS = (
    "Samsung", "Apple", "iPhone", "Huawei", "Xiaomi", "Oppo", "Vivo",
    "OnePlus", "Realme", "Nokia", "Sony", "LG", "Motorola", "Google",
    "Pixel", "Asus", "ZTE", "Honor", "Infinix", "Tecno", "Poco",
    "Redmi", "Galaxy", "Condor",
)

BRAND_ALIASES = {"iPhone": "Apple", "Pixel": "Google"}

MODEL_NOISE_WORDS = ("comme neuf", "neuf", "new", "used", "occasion", "original", "authentic")

_PRICE_CHARS = re.compile(r"[^\d.,]")
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_NOISE = re.compile(r"\b(?:%s)\b" % "|".join(re.escape(w) for w in MODEL_NOISE_WORDS), re.I)


def normalize_price(text) -> Optional[float]:
    """Parse a displayed price such as ``"45 000 DA"`` or ``"1 299,99 €"``.

    Returns ``None`` (never ``0``) when no number can be read.
    """
    if text is None:
        return None
    if isinstance(text, (int, float)):
        return float(text)
    cleaned = _PRICE_CHARS.sub("", str(text))
    normalized = cleaned.replace(",", ".", 1)
    m = _LEADING_NUMBER.match(normalized)
    if not m:
        return None
    return float(m.group(0))


def _first_rule(text, rules, default):
    for label, keywords in rules:
        if any(k in text for k in keywords):
            return label
    return default


def detect_category(title, description="") -> str:
    text = f"{title or ''} {description or ''}".lower()
    return _first_rule(text, CATEGORY_RULES, "smartphone")


def detect_condition(title, description="") -> str:
    text = f"{title or ''} {description or ''}".lower()
    return _first_rule(text, CONDITION_RULES, "used")


def extract_brand(title) -> str:
    upper = (title or "").upper()
    for brand in BRANDS:
        if brand.upper() in upper:
            return BRAND_ALIASES.get(brand, brand)
    return "Unknown"


def clean_model_name(title) -> str:
    cleaned = _NOISE.sub("", title or "")
    return " ".join(cleaned.split())


def absolute_url(value, base_url) -> Optional[str]:
    if not value:
        return None
    if value.startswith("http"):
        return value
    return urljoin(base_url.rstrip("/") + "/", value)


def make_listing(title, price_text, marketplace, base_url, *, condition=None, image=None, link=None,
                 currency="DZD", stock_level=1, availability_status="in_stock", **extra):
    """Turn the raw text scraped for one listing into a persistable record."""
    listing = {
        "title": title,
        "model": clean_model_name(title) or title,
        "brand": extract_brand(title),
        "category": detect_category(title),
        "price": normalize_price(price_text),
        "currency": currency,
        "condition": condition or detect_condition(title),
        "image_url": absolute_url(image, base_url),
        "source_url": absolute_url(link, base_url),
        "marketplace": marketplace,
        "listing_count": 1,
        "stock_level": stock_level,
        "availability_status": availability_status,
    }
    listing.update(extra)
    return listing
