# phone_tracker/crud.py
"""Low level persistence helpers.

Every function takes an open ``Session`` and leaves committing to the
caller, so several writes can share one transaction.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import select
from .db import upsert_insert
from .models import MarketplaceStats, PhonePopulation, PriceTrend, ScrapingJob, ScrapingLog


def record_price_trend(db, phone_id, marketplace, price, day):
    """Upsert the day's price point: latest price wins, observations accumulate."""
    table = PriceTrend.__table__
    stmt = upsert_insert(db, table).values(
        phone_id=phone_id, marketplace_name=marketplace, price=price,
        recorded_date=day, observation_count=1,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["phone_id", "marketplace_name", "recorded_date"],
        set_={
            "price": stmt.excluded.price,
            "observation_count": table.c.observation_count + 1,
        },
    )
    db.execute(stmt)


def record_population(db, phone_id, marketplace, day, total_listings=1, stock_count=0):
    """Upsert the day's population metric; both counters are additive."""
    table = PhonePopulation.__table__
    stmt = upsert_insert(db, table).values(
        phone_id=phone_id, marketplace_name=marketplace, recorded_date=day,
        total_listings=total_listings, stock_count=stock_count,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["phone_id", "marketplace_name", "recorded_date"],
        set_={
            "total_listings": table.c.total_listings + stmt.excluded.total_listings,
            "stock_count": table.c.stock_count + stmt.excluded.stock_count,
        },
    )
    db.execute(stmt)


def update_marketplace_stats(db, marketplace, total_listings, last_scraped_at):
    table = MarketplaceStats.__table__
    stmt = upsert_insert(db, table).values(
        marketplace_name=marketplace, total_listings=total_listings, last_scraped_at=last_scraped_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["marketplace_name"],
        set_={
            "total_listings": table.c.total_listings + stmt.excluded.total_listings,
            "last_scraped_at": stmt.excluded.last_scraped_at,
        },
    )
    db.execute(stmt)


def get_job(db, marketplace):
    return db.execute(
        select(ScrapingJob).where(ScrapingJob.marketplace_name == marketplace)
    ).scalar_one_or_none()


def create_job(db, marketplace, schedule_hours, next_run):
    job = ScrapingJob(
        job_id=str(uuid.uuid4()),
        marketplace_name=marketplace,
        status="idle",
        schedule_frequency_hours=schedule_hours,
        next_run=next_run,
    )
    db.add(job)
    db.flush()
    return job


def list_jobs(db):
    return db.execute(select(ScrapingJob).order_by(ScrapingJob.marketplace_name)).scalars().all()


def add_log(db, job_id, marketplace, level, message, details=None):
    entry = ScrapingLog(
        job_id=job_id, marketplace_name=marketplace, log_level=level,
        message=message, details=details or {}, created_at=datetime.now(timezone.utc),
    )
    db.add(entry)
    return entry


def list_logs(db, marketplace=None, level=None, limit=100, offset=0):
    q = select(ScrapingLog)
    if marketplace:
        q = q.where(ScrapingLog.marketplace_name == marketplace)
    if level:
        q = q.where(ScrapingLog.log_level == level)
    q = q.order_by(ScrapingLog.created_at.desc(), ScrapingLog.id.desc()).offset(offset).limit(limit)
    return db.execute(q).scalars().all()
