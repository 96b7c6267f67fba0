# phone_tracker/scrapers/http.py
"""Plain HTTP fetching for server-rendered marketplaces."""
import random
import requests
from ..utils import logger, call_with_retry

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "fr-FR,fr;q=0.9,en-US;q=0.8,en;q=0.7,ar;q=0.6",
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}


class HttpClient:
    def __init__(self, scraping, user_agents, session=None):
        self.scraping = scraping
        self.user_agents = user_agents
        self.session = session or requests.Session()
        if scraping.proxy:
            self.session.proxies.update({"http": scraping.proxy, "https": scraping.proxy})

    def _request(self, method, url, **kwargs):
        headers = dict(DEFAULT_HEADERS)
        headers["User-Agent"] = random.choice(self.user_agents)
        headers.update(kwargs.pop("headers", None) or {})
        logger.debug("%s %s", method, url)
        resp = self.session.request(
            method, url, headers=headers, timeout=self.scraping.request_timeout_ms / 1000.0, **kwargs
        )
        resp.raise_for_status()
        return resp

    def get(self, url, **kwargs):
        """GET ``url``; up to ``max_retries`` attempts with ``2**attempt`` second backoff."""
        return call_with_retry(
            self._request, "GET", url,
            tries=self.scraping.max_retries, delay=2, backoff=2,
            exceptions=requests.RequestException, **kwargs
        )

    def get_text(self, url, **kwargs):
        return self.get(url, **kwargs).text

    def close(self):
        self.session.close()
