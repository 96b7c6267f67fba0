# phone_tracker/pipeline.py
"""Scrape, persist and notify for one marketplace."""
from .scrapers.base import ScrapeResult
from .scrapers.registry import SCRAPERS, build_scraper
from .utils import logger


def run_scraper(ctx, name, scraper=None) -> ScrapeResult:
    logger.info("=== Starting %s scraper ===", name)
    try:
        scraper = scraper or build_scraper(name, ctx.settings)
    except Exception as e:
        logger.error("Cannot build %s scraper: %s", name, e)
        return ScrapeResult(success=False, marketplace=name, error=str(e),
                            stats={"items_scraped": 0, "duration": 0})

    result = scraper.run()
    if result.success:
        logger.info("Saving %d items to database...", len(result.data))
        saved = ctx.phone_service.save_scraped_data(result.data, scraper.marketplace)
        result.stats.update(saved)
        ctx.notifier.notify_success(name, result.stats)
    else:
        ctx.notifier.notify_failure(name, result.error)
    return result


def run_all_scrapers(ctx):
    logger.info("=== Starting all scrapers ===")
    results = {name: run_scraper(ctx, name) for name in SCRAPERS}
    logger.info("=== All scrapers completed ===")
    return results
