# tests/test_api.py
import pytest
from fastapi.testclient import TestClient
from phone_tracker import crud
from phone_tracker.main import create_app
from phone_tracker.scrapers.base import ScrapeResult


@pytest.fixture
def runs(context):
    calls = []

    def runner(marketplace):
        calls.append(marketplace)
        return ScrapeResult(success=True, marketplace=marketplace, stats={"items_scraped": 5, "duration": 1})

    context.job_manager.runner = runner
    return calls


@pytest.fixture
def client(context, runs):
    # not used as a context manager: startup (and the live scheduler) is skipped
    return TestClient(create_app(context))


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_not_ready_without_context():
    resp = TestClient(create_app()).get("/admin/jobs")
    assert resp.status_code == 503


def test_trigger_runs_job_in_background(client, runs):
    resp = client.post("/admin/jobs/jumia/trigger")
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert runs == ["jumia"]

    jobs = client.get("/admin/jobs").json()
    assert len(jobs) == 1
    assert jobs[0]["marketplace"] == "jumia"
    assert jobs[0]["status"] == "completed"
    assert jobs[0]["items_scraped"] == 5
    assert jobs[0]["is_running"] is False


def test_trigger_unknown_marketplace(client, runs):
    resp = client.post("/admin/jobs/leboncoin/trigger")
    assert resp.status_code == 404
    assert runs == []


def test_update_schedule(client, context, session_factory):
    resp = client.put("/admin/jobs/jumia/schedule", json={"hours": 2})
    assert resp.status_code == 200
    assert context.job_manager.intervals["jumia"] == 2
    with session_factory() as db:
        assert crud.get_job(db, "jumia").schedule_frequency_hours == 2


@pytest.mark.parametrize("hours", [0, 169])
def test_update_schedule_rejects_out_of_range(client, hours):
    assert client.put("/admin/jobs/jumia/schedule", json={"hours": hours}).status_code == 422


def test_logs_filtered_by_marketplace(client):
    client.post("/admin/jobs/jumia/trigger")
    client.post("/admin/jobs/ouedkniss/trigger")
    logs = client.get("/admin/logs", params={"marketplace": "jumia"}).json()
    assert len(logs) == 1
    assert logs[0]["log_level"] == "info"
    assert logs[0]["message"].startswith("Scraping completed: 5 items")
    assert logs[0]["details"]["items_scraped"] == 5
    assert client.get("/admin/logs", params={"level": "error"}).json() == []
