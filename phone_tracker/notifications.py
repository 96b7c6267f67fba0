# phone_tracker/notifications.py
"""Run outcome notifications: always logged, optionally POSTed to a webhook."""
from datetime import datetime, timezone
import requests
from .utils import logger


class Notifier:
    def __init__(self, webhook_url=None, timeout=10, session=None):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.session = session or requests

    def _send(self, event, payload):
        if not self.webhook_url:
            return False
        body = {"event": event, "timestamp": datetime.now(timezone.utc).isoformat(), "data": payload}
        try:
            resp = self.session.post(self.webhook_url, json=body, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.warning("Webhook delivery for %s failed: %s", event, e)
            return False
        return True

    def notify_success(self, marketplace, stats):
        logger.info(
            "Scraping completed for %s: %s items in %ss (%s new, %s updated)",
            marketplace, stats.get("items_scraped", 0), stats.get("duration", 0),
            stats.get("new_listings", 0), stats.get("updated_listings", 0),
        )
        return self._send("scrape.completed", {"marketplace": marketplace, "stats": stats})

    def notify_failure(self, marketplace, error):
        logger.error("Scraping failed for %s: %s", marketplace, error)
        return self._send("scrape.failed", {"marketplace": marketplace, "error": str(error)})

    def notify_data_quality_issue(self, issue):
        logger.warning("Data quality issue (%s): %s", issue.get("type"), issue.get("description"))
        return self._send("data.quality", issue)
