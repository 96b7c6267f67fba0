# phone_tracker/classifier.py
"""Listing classification for the catalog cleaning pass.

A local Ollama model is asked first when it answers its availability
probe; any failure along that path (timeout, HTTP error, unparsable or
invalid answer) falls back to the deterministic rules below, so callers
always get a result.
"""
import json
import re
from typing import Optional
import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import select
from .models import Phone
from .utils import logger

AI_CATEGORIES = ("smartphone", "tablet", "feature_phone", "accessory", "display", "laptop", "other")

FALLBACK_CATEGORY_RULES = (
    ("display", ("écran", "screen", "display", "afficheur", "lcd")),
    ("laptop", ("laptop", "macbook", "pc portable", "ordinateur")),
    ("tablet", ("tablet", "tablette", "ipad")),
    ("accessory", ("buds", "ecouteur", "earphone", "case", "coque", "charger",
                   "cable", "câble", "protection", "chargeur")),
)

MIN_PRICES = {"smartphone": 5000, "tablet": 10000, "laptop": 50000}

FALLBACK_BRANDS = (
    "samsung", "iphone", "apple", "xiaomi", "oppo", "realme", "tecno",
    "infinix", "huawei", "honor", "nokia", "motorola", "oneplus", "vivo",
    "anker", "boya", "jbl", "sony", "lg", "dell", "hp", "lenovo", "asus",
)

PROMPT = """Analyze this product listing and provide a JSON response with the following fields:

Product Title: {title}
Price: {price} DZD
Brand: {brand}
Current Category: {category}

Provide analysis in this exact JSON format:
{{
  "category": "smartphone|tablet|feature_phone|accessory|display|laptop|other",
  "brand": "actual brand name or Unknown",
  "isValidPrice": true or false,
  "priceReason": "reason if price is invalid",
  "cleanedTitle": "cleaned product name",
  "confidence": 0.0 to 1.0
}}

Rules:
- Valid categories ONLY: smartphone, tablet, feature_phone, accessory, display, laptop, other
- If it's a screen/display/écran, category is "display"
- If it's earbuds/case/charger/cable/buds, category is "accessory"
- If it's a laptop/MacBook/PC, category is "laptop"
- If price is 1 DZD or 1000000+ DZD, it's invalid
- If price is suspiciously low for the product type, mark as invalid
- Extract actual brand from title (e.g., "Samsung Galaxy S23" -> Samsung)
- Clean title by removing extra spaces, fixing typos, removing store names

Respond with ONLY the JSON, no extra text."""

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class Analysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: str = "other"
    brand: str = "Unknown"
    is_valid_price: bool = Field(True, alias="isValidPrice")
    price_reason: str = Field("", alias="priceReason")
    cleaned_title: str = Field("", alias="cleanedTitle")
    confidence: float = 0.0

    @field_validator("category")
    @classmethod
    def known_category(cls, v):
        return v if v in AI_CATEGORIES else "other"


def _title(product):
    return product.get("model") or product.get("title") or ""


def _price(product):
    try:
        return float(product.get("price") or 0)
    except (TypeError, ValueError):
        return 0.0


def fallback_categorization(product) -> Analysis:
    title = _title(product)
    text = title.lower()
    price = _price(product)

    category = product.get("category") or "smartphone"
    for label, keywords in FALLBACK_CATEGORY_RULES:
        if any(k in text for k in keywords):
            category = label
            break

    is_valid_price, reason = True, ""
    if price <= 1 or price >= 1000000:
        is_valid_price, reason = False, "Price is unrealistic (too low or too high)"
    elif category in MIN_PRICES and price < MIN_PRICES[category]:
        is_valid_price, reason = False, f"Price too low for a {category}"

    brand = product.get("brand") or "Unknown"
    for b in FALLBACK_BRANDS:
        if b in text:
            brand = "Apple" if b == "iphone" else b.title()
            break

    return Analysis(
        category=category,
        brand=brand,
        is_valid_price=is_valid_price,
        price_reason=reason,
        cleaned_title=title,
        confidence=0.7,
    )


class Classifier:
    def __init__(self, ai_config, session=None):
        self.config = ai_config
        self.http = session or requests.Session()

    def check_availability(self) -> bool:
        try:
            resp = self.http.get(f"{self.config.url}/api/tags", timeout=self.config.probe_timeout_s)
            return resp.status_code == 200
        except requests.RequestException:
            return False

    def analyze_product(self, product) -> Optional[Analysis]:
        prompt = PROMPT.format(
            title=_title(product),
            price=product.get("price"),
            brand=product.get("brand") or "Unknown",
            category=product.get("category") or "Unknown",
        )
        try:
            resp = self.http.post(
                f"{self.config.url}/api/generate",
                json={
                    "model": self.config.model,
                    "prompt": prompt,
                    "stream": False,
                    "options": {"temperature": 0.1, "top_p": 0.9},
                },
                timeout=self.config.request_timeout_s,
            )
            resp.raise_for_status()
            text = resp.json().get("response", "")
            if not isinstance(text, str):
                logger.warning("AI response is not text: %r", type(text).__name__)
                return None
            match = _JSON_BLOCK.search(text)
            if not match:
                logger.warning("AI response did not contain JSON: %.200s", text)
                return None
            analysis = Analysis.model_validate(json.loads(match.group(0)))
            if not analysis.cleaned_title:
                analysis.cleaned_title = _title(product)
            return analysis
        except (requests.RequestException, ValueError, ValidationError, AttributeError) as e:
            logger.error("Error analyzing product with AI: %s", e)
            return None

    def analyze_with_fallback(self, product) -> Analysis:
        if self.check_availability():
            analysis = self.analyze_product(product)
            if analysis is not None:
                return analysis
        return fallback_categorization(product)


def _as_record(phone):
    return {
        "id": phone.id, "model": phone.model, "brand": phone.brand,
        "category": phone.category, "price": phone.price,
        "availability_status": phone.availability_status,
    }


def clean_catalog(session_factory, classifier, marketplace="ouedkniss", limit=100, dry_run=False, notifier=None):
    """Re-classify the most recent catalog entries and fix what the analysis disagrees with."""
    summary = {"processed": 0, "updated": 0, "categorized": 0, "brand_updates": 0, "price_issues": 0}
    if not classifier.check_availability():
        logger.warning("AI service not available, using rule-based categorization.")

    q = select(Phone)
    if marketplace != "all":
        q = q.where(Phone.marketplace_name == marketplace)
    q = q.order_by(Phone.created_at.desc(), Phone.id.desc()).limit(limit)

    with session_factory() as db:
        phones = db.execute(q).scalars().all()
        logger.info("Found %d products to analyze", len(phones))
        for phone in phones:
            try:
                changes = _analyze_changes(classifier, phone, summary)
                if changes and not dry_run:
                    for name, value in changes.items():
                        setattr(phone, name, value)
                    db.commit()
                elif changes:
                    logger.info("[%s] Would update: %s", phone.id, ", ".join(changes))
                if changes:
                    summary["updated"] += 1
            except Exception as e:
                db.rollback()
                logger.error("Error processing product %s: %s", phone.id, e)
            summary["processed"] += 1
    logger.info("Cleaning summary: %s%s", summary, " (dry run)" if dry_run else "")
    if summary["price_issues"] and notifier is not None:
        notifier.notify_data_quality_issue({
            "type": "invalid_price",
            "description": f"{summary['price_issues']} of {summary['processed']} products have an implausible price",
            "marketplace": marketplace,
            "count": summary["price_issues"],
            "dry_run": dry_run,
        })
    return summary


def _analyze_changes(classifier, phone, summary):
    record = _as_record(phone)
    analysis = classifier.analyze_with_fallback(record)
    changes = {}
    if analysis.category != phone.category:
        changes["category"] = analysis.category
        summary["categorized"] += 1
        logger.info("[%s] Category: %s -> %s", phone.id, phone.category, analysis.category)
    if analysis.brand != "Unknown" and analysis.brand != phone.brand:
        changes["brand"] = analysis.brand
        summary["brand_updates"] += 1
        logger.info("[%s] Brand: %s -> %s", phone.id, phone.brand, analysis.brand)
    if not analysis.is_valid_price:
        summary["price_issues"] += 1
        logger.warning("[%s] Invalid price: %s DZD - %s", phone.id, phone.price, analysis.price_reason)
        if phone.availability_status != "out_of_stock":
            changes["availability_status"] = "out_of_stock"
    cleaned = (analysis.cleaned_title or "").strip()
    if cleaned and cleaned != phone.model and 3 < len(cleaned) < 255:
        changes["model"] = cleaned
    return changes
