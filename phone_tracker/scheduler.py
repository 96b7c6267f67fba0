# phone_tracker/scheduler.py
"""Recurring per-marketplace scraping jobs.

Each marketplace owns one APScheduler interval job aligned to the top of
the hour, and at most one run per marketplace is in flight at any time:
scheduled and manual runs share the same guard, and a run requested while
another is active is skipped, never queued. Jobs whose listings land on
the same marketplace (the general search and the store crawl) share a guard.
"""
import threading
import time
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from . import crud
from .scrapers.registry import UnknownMarketplaceError
from .utils import logger


def first_fire_time(now, hours):
    """Next top-of-hour whose hour is a multiple of ``hours`` (next midnight past a day)."""
    candidate = now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
    if hours > 24:
        return candidate.replace(hour=0) + timedelta(days=1) if candidate.hour else candidate
    while candidate.hour % hours != 0:
        candidate += timedelta(hours=1)
    return candidate


class JobManager:
    def __init__(self, session_factory, settings, runner, scheduler=None):
        """``runner(marketplace)`` performs one scrape and returns a ``ScrapeResult``."""
        self.session_factory = session_factory
        self.settings = settings
        self.runner = runner
        self.tz = ZoneInfo(settings.timezone)
        self.scheduler = scheduler or BackgroundScheduler(timezone=self.tz)
        self.running = set()
        self.intervals = {}
        self._guard = threading.Lock()
        self._timers = threading.Lock()

    def start(self):
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    # -- job records ------------------------------------------------------

    def _ensure_job_record(self, marketplace, hours):
        with self.session_factory.begin() as db:
            job = crud.get_job(db, marketplace)
            if job is None:
                next_run = datetime.now(timezone.utc) + timedelta(hours=hours)
                crud.create_job(db, marketplace, hours, next_run)
                logger.info("Created job record for %s", marketplace)
            else:
                hours = job.schedule_frequency_hours
        return hours

    def initialize_jobs(self):
        logger.info("Initializing scheduled jobs...")
        for name, config in self.settings.marketplaces.items():
            if not config.enabled:
                logger.info("%s is disabled, skipping...", name)
                continue
            hours = self._ensure_job_record(name, config.schedule_hours)
            self.schedule_job(name, hours)
        logger.info("Initialized %d scheduled jobs", len(self.intervals))

    # -- timers -------------------------------------------------------------

    def _trigger(self, hours):
        start = first_fire_time(datetime.now(self.tz), hours)
        return IntervalTrigger(hours=hours, start_date=start, timezone=self.tz)

    def schedule_job(self, marketplace, hours):
        with self._timers:
            trigger = self._trigger(hours)
            if marketplace in self.intervals and self.scheduler.get_job(marketplace) is not None:
                # swaps the trigger in place; never two timers for one marketplace
                self.scheduler.reschedule_job(marketplace, trigger=trigger)
            else:
                self.scheduler.add_job(
                    self.execute_job, trigger, args=[marketplace], id=marketplace,
                    name=f"scrape:{marketplace}", replace_existing=True,
                    coalesce=True, max_instances=1, misfire_grace_time=3600,
                )
            self.intervals[marketplace] = hours
        logger.info("Scheduled %s to run every %d hours (first run %s)", marketplace, hours, trigger.start_date)

    # -- execution ------------------------------------------------------

    def _interval(self, marketplace):
        if marketplace in self.intervals:
            return self.intervals[marketplace]
        return self.settings.marketplaces[marketplace].schedule_hours

    def _target(self, marketplace):
        """Marketplace the job's listings are saved under; jobs sharing one never overlap."""
        config = self.settings.marketplaces.get(marketplace)
        return config.marketplace if config is not None else marketplace

    def execute_job(self, marketplace):
        target = self._target(marketplace)
        with self._guard:
            busy = [name for name in self.running if self._target(name) == target]
            if busy:
                logger.warning("%s job skipped, %s is already running against %s",
                               marketplace, busy[0], target)
                return None
            self.running.add(marketplace)

        start = time.monotonic()
        try:
            logger.info("Executing job for %s...", marketplace)
            self._ensure_job_record(marketplace, self._interval(marketplace))
            self._mark_running(marketplace)
            result = None
            try:
                result = self.runner(marketplace)
                status = "completed" if result.success else "failed"
                items, error = result.items_scraped, result.error
            except Exception as e:
                logger.exception("%s job failed: %s", marketplace, e)
                status, items, error = "failed", 0, str(e)
            duration = int(time.monotonic() - start)
            self._mark_finished(marketplace, status, items, duration, error)
            logger.info("%s job %s in %ss", marketplace, status, duration)
            return result
        except Exception as e:
            logger.exception("Could not record %s job outcome: %s", marketplace, e)
            return None
        finally:
            with self._guard:
                self.running.discard(marketplace)

    def _mark_running(self, marketplace):
        with self.session_factory.begin() as db:
            job = crud.get_job(db, marketplace)
            job.status = "running"
            job.error_message = None

    def _mark_finished(self, marketplace, status, items, duration, error):
        now = datetime.now(timezone.utc)
        with self.session_factory.begin() as db:
            job = crud.get_job(db, marketplace)
            job.status = status
            job.last_run = now
            job.next_run = now + timedelta(hours=self._interval(marketplace))
            job.items_scraped = items
            job.duration_seconds = duration
            job.error_message = error
            if status == "failed":
                level, message = "error", f"Scraping failed: {error}"
            else:
                level, message = "info", f"Scraping completed: {items} items in {duration}s"
            crud.add_log(db, job.job_id, marketplace, level, message, {
                "status": status, "items_scraped": items, "duration": duration, "error": error,
            })

    # -- operations exposed to the admin surface ------------------------------

    def trigger_job(self, marketplace):
        if marketplace not in self.settings.marketplaces:
            raise UnknownMarketplaceError(marketplace)
        logger.info("Manually triggering %s job...", marketplace)
        return self.execute_job(marketplace)

    def update_job_schedule(self, marketplace, hours):
        if marketplace not in self.settings.marketplaces:
            raise UnknownMarketplaceError(marketplace)
        hours = int(hours)
        if hours < 1:
            raise ValueError("schedule interval must be at least one hour")
        self._ensure_job_record(marketplace, hours)
        with self.session_factory.begin() as db:
            job = crud.get_job(db, marketplace)
            job.schedule_frequency_hours = hours
            job.next_run = datetime.now(timezone.utc) + timedelta(hours=hours)
        self.schedule_job(marketplace, hours)
        logger.info("Updated %s schedule to every %d hours", marketplace, hours)

    def get_job_statuses(self):
        with self.session_factory() as db:
            jobs = crud.list_jobs(db)
            with self._guard:
                running = set(self.running)
            return [
                {
                    "job_id": job.job_id,
                    "marketplace": job.marketplace_name,
                    "status": job.status,
                    "schedule_frequency_hours": job.schedule_frequency_hours,
                    "last_run": job.last_run,
                    "next_run": job.next_run,
                    "items_scraped": job.items_scraped,
                    "duration_seconds": job.duration_seconds,
                    "error_message": job.error_message,
                    "is_running": job.marketplace_name in running,
                }
                for job in jobs
            ]

    def stop_all(self):
        logger.info("Stopping all scheduled jobs...")
        with self._timers:
            for marketplace in list(self.intervals):
                if self.scheduler.get_job(marketplace) is not None:
                    self.scheduler.remove_job(marketplace)
                logger.info("Stopped %s job", marketplace)
            self.intervals.clear()

    def shutdown(self):
        self.stop_all()
        if self.scheduler.running:
            # in-flight runs finish on their own
            self.scheduler.shutdown(wait=False)
