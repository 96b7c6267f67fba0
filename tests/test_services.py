# tests/test_services.py
from datetime import date
import pytest
from sqlalchemy import func, select
from phone_tracker.models import MarketplaceStats, Phone, PhonePopulation, PriceTrend
from phone_tracker.services import PhoneService, similarity
from conftest import listing


@pytest.fixture
def service(session_factory):
    return PhoneService(session_factory, today=lambda: date(2024, 3, 1))


def _count(session_factory, model):
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_similarity_is_case_insensitive():
    assert similarity("Galaxy S21", "GALAXY s21") == 100


def test_threshold_is_strictly_above_85(service):
    service.create_phone(listing("a" * 50))
    assert similarity("a" * 50, "a" * 42 + "b" * 8) == 84
    assert similarity("a" * 50, "a" * 43 + "b" * 7) == 86
    assert service.find_similar_phone("a" * 42 + "b" * 8, "Samsung", "ouedkniss") is None
    assert service.find_similar_phone("a" * 43 + "b" * 7, "Samsung", "ouedkniss") is not None


def test_most_recent_match_wins_over_best_match(service):
    older = service.create_phone(listing("Galaxy S21 Ultra"))
    newer = service.create_phone(listing("Galaxy S21 Ultr"))
    match = service.find_similar_phone("Galaxy S21 Ultra", "Samsung", "ouedkniss")
    assert match.id == newer
    assert match.id != older


def test_matching_is_scoped_by_brand_and_marketplace(service):
    service.create_phone(listing("Galaxy S21"))
    assert service.find_similar_phone("Galaxy S21", "Apple", "ouedkniss") is None
    assert service.find_similar_phone("Galaxy S21", "Samsung", "jumia") is None
    assert service.find_similar_phone("Galaxy S21", "Samsung", "ouedkniss") is not None


def test_repeated_save_updates_instead_of_duplicating(service, session_factory):
    first = service.save_scraped_data([listing("Galaxy S21", price=50000.0)], "ouedkniss")
    second = service.save_scraped_data([listing("Galaxy S21", price=48000.0)], "ouedkniss")
    assert first == {"new_listings": 1, "updated_listings": 0}
    assert second == {"new_listings": 0, "updated_listings": 1}

    with session_factory() as db:
        phone = db.execute(select(Phone)).scalar_one()
        assert phone.listing_count == 2
        assert float(phone.price) == 48000.0
        trend = db.execute(select(PriceTrend)).scalar_one()
        assert trend.observation_count == 2
        assert float(trend.price) == 48000.0
        population = db.execute(select(PhonePopulation)).scalar_one()
        assert population.total_listings == 2
        assert population.stock_count == 2


def test_update_merges_only_present_fields(service, session_factory):
    phone_id = service.create_phone(listing("iPhone 13", brand="Apple", image_url="https://img/1.jpg"))
    service.update_phone(phone_id, {"price": None, "image_url": None, "source_url": "https://x/13"})
    with session_factory() as db:
        phone = db.get(Phone, phone_id)
        assert float(phone.price) == 50000.0
        assert phone.image_url == "https://img/1.jpg"
        assert phone.source_url == "https://x/13"
        assert phone.listing_count == 2


def test_update_missing_phone_raises(service):
    with pytest.raises(LookupError):
        service.update_phone(999, {"price": 1})


def test_missing_price_skips_trend_but_counts_population(service, session_factory):
    service.save_scraped_data([listing("Nokia 3310", brand="Nokia", price=None, stock_level=0)], "jumia")
    assert _count(session_factory, PriceTrend) == 0
    with session_factory() as db:
        population = db.execute(select(PhonePopulation)).scalar_one()
        assert population.total_listings == 1
        assert population.stock_count == 0


def test_zero_price_is_recorded(service, session_factory):
    service.save_scraped_data([listing("Nokia 105", brand="Nokia", price=0.0)], "jumia")
    assert _count(session_factory, PriceTrend) == 1


def test_failed_item_is_excluded(service, session_factory):
    broken = listing("Galaxy A54")
    del broken["model"]
    counts = service.save_scraped_data(
        [listing("Galaxy S21"), broken, listing("Redmi Note 12", brand="Xiaomi")], "ouedkniss"
    )
    assert counts == {"new_listings": 2, "updated_listings": 0}
    assert _count(session_factory, Phone) == 2


def test_marketplace_stats_rollup(service, session_factory):
    service.save_scraped_data([listing("Galaxy S21"), listing("Galaxy A54")], "ouedkniss")
    service.save_scraped_data([listing("Galaxy S21")], "ouedkniss")
    with session_factory() as db:
        stats = db.execute(select(MarketplaceStats)).scalar_one()
        assert stats.marketplace_name == "ouedkniss"
        assert stats.total_listings == 3
        assert stats.last_scraped_at is not None

