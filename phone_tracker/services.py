# phone_tracker/services.py
"""Deduplicating persistence of scraped listings.

Listings are matched to catalog entries of the same brand on the same
marketplace by fuzzy model-name similarity. A match updates the entry,
anything else creates a new one; both paths feed the daily price-trend and
population series.
"""
from datetime import date, datetime, timezone
from typing import Dict, Iterable
from rapidfuzz import fuzz
from sqlalchemy import select
from sqlalchemy.orm import Session
from . import crud
from .models import Phone
from .utils import logger

MATCH_THRESHOLD = 85
CANDIDATE_LIMIT = 20

MERGED_FIELDS = ("price", "image_url", "source_url", "stock_level", "availability_status")


def similarity(a, b) -> int:
    """0-100 similarity ratio, rounded to an integer."""
    return int(round(fuzz.ratio((a or "").lower(), (b or "").lower())))


class PhoneService:
    def __init__(self, session_factory, today=date.today):
        self.session_factory = session_factory
        self.today = today

    # -- public operations, each in its own transaction ---------------------

    def save_scraped_data(self, items: Iterable[Dict], marketplace: str) -> Dict[str, int]:
        new_listings = 0
        updated_listings = 0
        for item in items:
            try:
                # one transaction per listing; a failure only rolls back this item
                with self.session_factory.begin() as db:
                    existing = self._find_similar(
                        db, item.get("model"), item.get("brand"), item.get("marketplace") or marketplace
                    )
                    if existing is not None:
                        self._update(db, existing, item)
                    else:
                        self._create(db, item, marketplace)
            except Exception as e:
                logger.exception("Error saving phone data %r: %s", item.get("model"), e)
                continue
            if existing is not None:
                updated_listings += 1
            else:
                new_listings += 1

        try:
            with self.session_factory.begin() as db:
                crud.update_marketplace_stats(
                    db, marketplace, new_listings + updated_listings, datetime.now(timezone.utc)
                )
        except Exception as e:
            logger.exception("Error updating marketplace stats for %s: %s", marketplace, e)

        logger.info("%s: %d new listings, %d updated", marketplace, new_listings, updated_listings)
        return {"new_listings": new_listings, "updated_listings": updated_listings}

    def find_similar_phone(self, model, brand, marketplace):
        with self.session_factory() as db:
            phone = self._find_similar(db, model, brand, marketplace)
            if phone is not None:
                db.expunge(phone)
            return phone

    def create_phone(self, item) -> int:
        with self.session_factory.begin() as db:
            return self._create(db, item, item.get("marketplace")).id

    def update_phone(self, phone_id, item):
        with self.session_factory.begin() as db:
            phone = db.get(Phone, phone_id)
            if phone is None:
                raise LookupError(f"phone {phone_id} not found")
            self._update(db, phone, item)

    # -- building blocks --------------------------------------------------

    def _find_similar(self, db: Session, model, brand, marketplace):
        candidates = db.execute(
            select(Phone)
            .where(Phone.brand == brand, Phone.marketplace_name == marketplace)
            .order_by(Phone.created_at.desc(), Phone.id.desc())
            .limit(CANDIDATE_LIMIT)
        ).scalars().all()
        # most recent candidate above the threshold wins, even if a later one scores higher
        for phone in candidates:
            if similarity(model, phone.model) > MATCH_THRESHOLD:
                return phone
        return None

    def _record_series(self, db, phone_id, marketplace, item):
        day = self.today()
        if item.get("price") is not None:
            crud.record_price_trend(db, phone_id, marketplace, item["price"], day)
        crud.record_population(
            db, phone_id, marketplace, day,
            total_listings=1, stock_count=item.get("stock_level") or 0,
        )

    def _create(self, db: Session, item, marketplace=None):
        now = datetime.now(timezone.utc)
        phone = Phone(
            marketplace_name=item.get("marketplace") or marketplace,
            brand=item.get("brand") or "Unknown",
            model=item["model"],
            raw_title=item.get("title"),
            category=item.get("category") or "smartphone",
            condition=item.get("condition") or "used",
            price=item.get("price"),
            currency=item.get("currency") or "DZD",
            availability_status=item.get("availability_status") or "in_stock",
            stock_level=item.get("stock_level") or 0,
            image_url=item.get("image_url"),
            source_url=item.get("source_url"),
            location=item.get("location"),
            seller_name=item.get("seller_name"),
            seller_type=item.get("seller_type"),
            listing_count=1,
            scraped_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(phone)
        db.flush()
        self._record_series(db, phone.id, phone.marketplace_name, item)
        return phone

    def _update(self, db: Session, phone: Phone, item):
        for name in MERGED_FIELDS:
            value = item.get(name)
            if value is not None:
                setattr(phone, name, value)
        now = datetime.now(timezone.utc)
        phone.listing_count = Phone.listing_count + 1
        phone.scraped_at = now
        phone.updated_at = now
        db.flush()
        # the marketplace of an existing entry never changes
        self._record_series(db, phone.id, phone.marketplace_name, item)
        return phone
