# tests/test_scheduler.py
import threading
from datetime import datetime, timedelta, timezone
import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from phone_tracker import crud
from phone_tracker.scheduler import JobManager, first_fire_time
from phone_tracker.scrapers.base import ScrapeResult
from phone_tracker.scrapers.registry import UnknownMarketplaceError


class BlockingRunner:
    """Runner that parks inside the scrape until released."""

    def __init__(self, items=3, error=None):
        self.calls = []
        self.started = threading.Event()
        self.release = threading.Event()
        self.items = items
        self.error = error

    def __call__(self, marketplace):
        self.calls.append(marketplace)
        self.started.set()
        self.release.wait(5)
        if self.error:
            raise self.error
        return ScrapeResult(success=True, marketplace=marketplace, stats={"items_scraped": self.items})


@pytest.fixture
def manager_factory(session_factory, settings):
    managers = []

    def make(runner):
        manager = JobManager(session_factory, settings, runner,
                             scheduler=BackgroundScheduler(timezone=timezone.utc))
        manager.start()
        managers.append(manager)
        return manager

    yield make
    for manager in managers:
        manager.shutdown()


def _job(session_factory, marketplace):
    with session_factory() as db:
        job = crud.get_job(db, marketplace)
        db.expunge(job)
        return job


@pytest.mark.parametrize("now, hours, expected", [
    (datetime(2024, 3, 1, 10, 17), 6, datetime(2024, 3, 1, 12)),
    (datetime(2024, 3, 1, 10, 17), 5, datetime(2024, 3, 1, 15)),
    (datetime(2024, 3, 1, 10, 0), 1, datetime(2024, 3, 1, 11)),
    (datetime(2024, 3, 1, 23, 30), 4, datetime(2024, 3, 2, 0)),
    (datetime(2024, 3, 1, 10, 17), 48, datetime(2024, 3, 2, 0)),
    (datetime(2024, 3, 1, 23, 10), 48, datetime(2024, 3, 2, 0)),
])
def test_first_fire_time(now, hours, expected):
    assert first_fire_time(now, hours) == expected


def test_initialize_jobs_schedules_enabled_marketplaces(manager_factory, session_factory):
    manager = manager_factory(BlockingRunner())
    manager.initialize_jobs()

    assert manager.intervals == {"ouedkniss": 6, "jumia": 4}
    assert manager.scheduler.get_job("jumia") is not None
    assert manager.scheduler.get_job("facebook") is None
    job = _job(session_factory, "jumia")
    assert job.status == "idle"
    assert job.schedule_frequency_hours == 4
    assert job.next_run is not None


def test_initialize_jobs_keeps_persisted_interval(manager_factory, session_factory):
    with session_factory.begin() as db:
        crud.create_job(db, "jumia", 2, None)
    manager = manager_factory(BlockingRunner())
    manager.initialize_jobs()
    assert manager.intervals["jumia"] == 2
    assert manager.scheduler.get_job("jumia").trigger.interval == timedelta(hours=2)


def test_concurrent_trigger_is_skipped(manager_factory, session_factory):
    runner = BlockingRunner(items=7)
    manager = manager_factory(runner)
    worker = threading.Thread(target=manager.trigger_job, args=("jumia",))
    worker.start()
    assert runner.started.wait(5)

    assert manager.trigger_job("jumia") is None
    statuses = {s["marketplace"]: s for s in manager.get_job_statuses()}
    assert statuses["jumia"]["is_running"]
    assert statuses["jumia"]["status"] == "running"

    runner.release.set()
    worker.join(5)
    assert runner.calls == ["jumia"]
    job = _job(session_factory, "jumia")
    assert job.status == "completed"
    assert job.items_scraped == 7
    assert not manager.get_job_statuses()[0]["is_running"]


def test_jobs_saving_to_same_marketplace_never_overlap(manager_factory):
    runner = BlockingRunner()
    manager = manager_factory(runner)
    worker = threading.Thread(target=manager.trigger_job, args=("ouedkniss",))
    worker.start()
    assert runner.started.wait(5)

    assert manager.trigger_job("ouedkniss_stores") is None
    assert manager.running == {"ouedkniss"}

    runner.release.set()
    worker.join(5)
    assert runner.calls == ["ouedkniss"]
    manager.trigger_job("ouedkniss_stores")
    assert runner.calls == ["ouedkniss", "ouedkniss_stores"]


def test_other_marketplaces_run_alongside(manager_factory):
    stores = BlockingRunner()
    calls = []

    def runner(marketplace):
        calls.append(marketplace)
        if marketplace == "ouedkniss_stores":
            return stores(marketplace)
        return ScrapeResult(success=True, marketplace=marketplace, stats={"items_scraped": 1})

    manager = manager_factory(runner)
    worker = threading.Thread(target=manager.trigger_job, args=("ouedkniss_stores",))
    worker.start()
    assert stores.started.wait(5)

    assert manager.trigger_job("jumia").success
    assert manager.running == {"ouedkniss_stores"}

    stores.release.set()
    worker.join(5)
    assert calls == ["ouedkniss_stores", "jumia"]


def test_reschedule_while_running(manager_factory, session_factory):
    runner = BlockingRunner()
    manager = manager_factory(runner)
    manager.initialize_jobs()
    worker = threading.Thread(target=manager.trigger_job, args=("jumia",))
    worker.start()
    assert runner.started.wait(5)

    manager.update_job_schedule("jumia", 2)
    assert [j.id for j in manager.scheduler.get_jobs()].count("jumia") == 1
    assert manager.scheduler.get_job("jumia").trigger.interval == timedelta(hours=2)

    runner.release.set()
    worker.join(5)
    job = _job(session_factory, "jumia")
    assert job.schedule_frequency_hours == 2
    assert job.next_run - job.last_run == timedelta(hours=2)


def test_failed_run_is_recorded_and_releases_guard(manager_factory, session_factory):
    runner = BlockingRunner(error=RuntimeError("browser crashed"))
    runner.release.set()
    manager = manager_factory(runner)

    assert manager.trigger_job("jumia") is None
    assert manager.trigger_job("jumia") is None
    assert runner.calls == ["jumia", "jumia"]

    job = _job(session_factory, "jumia")
    assert job.status == "failed"
    assert job.error_message == "browser crashed"
    assert job.items_scraped == 0
    with session_factory() as db:
        logs = crud.list_logs(db, marketplace="jumia", level="error")
        assert len(logs) == 2
        assert logs[0].message == "Scraping failed: browser crashed"
        assert logs[0].job_id == job.job_id


def test_unsuccessful_result_marks_job_failed(manager_factory, session_factory):
    def runner(marketplace):
        return ScrapeResult(success=False, marketplace=marketplace, error="no listings",
                            stats={"items_scraped": 0, "duration": 1})

    manager = manager_factory(runner)
    result = manager.trigger_job("ouedkniss")
    assert not result.success
    assert _job(session_factory, "ouedkniss").status == "failed"


def test_trigger_disabled_marketplace_creates_record(manager_factory, session_factory):
    runner = BlockingRunner()
    runner.release.set()
    manager = manager_factory(runner)
    manager.trigger_job("facebook")
    job = _job(session_factory, "facebook")
    assert job.schedule_frequency_hours == 8
    assert job.status == "completed"
    assert job.next_run - job.last_run == timedelta(hours=8)


def test_unknown_marketplace_and_bad_interval(manager_factory):
    manager = manager_factory(BlockingRunner())
    with pytest.raises(UnknownMarketplaceError):
        manager.trigger_job("leboncoin")
    with pytest.raises(UnknownMarketplaceError):
        manager.update_job_schedule("leboncoin", 4)
    with pytest.raises(ValueError):
        manager.update_job_schedule("jumia", 0)


def test_stop_all_is_idempotent(manager_factory):
    manager = manager_factory(BlockingRunner())
    manager.initialize_jobs()
    manager.stop_all()
    manager.stop_all()
    assert manager.scheduler.get_jobs() == []
    assert manager.intervals == {}
    # a stopped marketplace can be scheduled again
    manager.schedule_job("jumia", 4)
    assert manager.scheduler.get_job("jumia") is not None
