# phone_tracker/models.py
"""SQLAlchemy ORM models for persisted entities.

``Phone`` is the deduplicated catalog entry, ``PriceTrend`` and
``PhonePopulation`` are its daily time series, ``ScrapingJob`` and
``ScrapingLog`` hold the scheduler's run history.
"""
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, Text, Numeric, Date, TIMESTAMP, ForeignKey, Index, UniqueConstraint, JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from .db import Base

CATEGORIES = ("smartphone", "tablet", "feature_phone", "accessory")
CONDITIONS = ("new", "like_new", "used", "for_parts")
AVAILABILITY = ("in_stock", "limited_stock", "out_of_stock")
JOB_STATUSES = ("idle", "running", "completed", "failed")
LOG_LEVELS = ("info", "warn", "error")


def utcnow():
    return datetime.now(timezone.utc)


class Phone(Base):
    __tablename__ = "phones"
    id = Column(Integer, primary_key=True, index=True)
    marketplace_name = Column(Text, nullable=False)
    brand = Column(Text, nullable=False, default="Unknown")
    model = Column(Text, nullable=False)
    raw_title = Column(Text)
    category = Column(Text, nullable=False, default="smartphone")
    condition = Column(Text, nullable=False, default="used")
    price = Column(Numeric(12, 2))
    currency = Column(Text, default="DZD")
    availability_status = Column(Text, nullable=False, default="in_stock")
    stock_level = Column(Integer, nullable=False, default=0)
    image_url = Column(Text)
    source_url = Column(Text)
    location = Column(Text)
    seller_name = Column(Text)
    seller_type = Column(Text)
    listing_count = Column(Integer, nullable=False, default=1)
    scraped_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)


Index("idx_phones_brand_marketplace", Phone.brand, Phone.marketplace_name, Phone.created_at)


class PriceTrend(Base):
    __tablename__ = "price_trends"
    __table_args__ = (
        UniqueConstraint("phone_id", "marketplace_name", "recorded_date", name="uq_price_trend_day"),
    )
    id = Column(Integer, primary_key=True)
    phone_id = Column(Integer, ForeignKey("phones.id", ondelete="CASCADE"), nullable=False)
    marketplace_name = Column(Text, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    recorded_date = Column(Date, nullable=False)
    observation_count = Column(Integer, nullable=False, default=1)


class PhonePopulation(Base):
    __tablename__ = "phone_populations"
    __table_args__ = (
        UniqueConstraint("phone_id", "marketplace_name", "recorded_date", name="uq_population_day"),
    )
    id = Column(Integer, primary_key=True)
    phone_id = Column(Integer, ForeignKey("phones.id", ondelete="CASCADE"), nullable=False)
    marketplace_name = Column(Text, nullable=False)
    recorded_date = Column(Date, nullable=False)
    total_listings = Column(Integer, nullable=False, default=0)
    stock_count = Column(Integer, nullable=False, default=0)


class MarketplaceStats(Base):
    __tablename__ = "marketplace_stats"
    id = Column(Integer, primary_key=True)
    marketplace_name = Column(Text, nullable=False, unique=True)
    total_listings = Column(Integer, nullable=False, default=0)
    last_scraped_at = Column(TIMESTAMP(timezone=True))


class ScrapingJob(Base):
    __tablename__ = "scraping_jobs"
    id = Column(Integer, primary_key=True)
    job_id = Column(Text, nullable=False, unique=True)
    marketplace_name = Column(Text, nullable=False, unique=True, index=True)
    status = Column(Text, nullable=False, default="idle")
    schedule_frequency_hours = Column(Integer, nullable=False)
    last_run = Column(TIMESTAMP(timezone=True))
    next_run = Column(TIMESTAMP(timezone=True))
    items_scraped = Column(Integer, nullable=False, default=0)
    duration_seconds = Column(Integer, nullable=False, default=0)
    error_message = Column(Text)
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), default=utcnow, onupdate=utcnow)


class ScrapingLog(Base):
    __tablename__ = "scraping_logs"
    id = Column(Integer, primary_key=True)
    job_id = Column(Text, nullable=False, index=True)
    marketplace_name = Column(Text, nullable=False)
    log_level = Column(Text, nullable=False, default="info")
    message = Column(Text, nullable=False)
    details = Column(JSON().with_variant(JSONB, "postgresql"))
    created_at = Column(TIMESTAMP(timezone=True), default=utcnow)


Index("idx_scraping_logs_marketplace", ScrapingLog.marketplace_name, ScrapingLog.created_at)
