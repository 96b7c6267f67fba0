# phone_tracker/scrapers/registry.py
from .facebook import FacebookScraper
from .jumia import JumiaScraper
from .ouedkniss import OuedknissScraper
from .ouedkniss_stores import OuedknissStoresScraper

SCRAPERS = {
    OuedknissScraper.name: OuedknissScraper,
    OuedknissStoresScraper.name: OuedknissStoresScraper,
    JumiaScraper.name: JumiaScraper,
    FacebookScraper.name: FacebookScraper,
}


class UnknownMarketplaceError(KeyError):
    def __str__(self):
        return f"Unknown marketplace: {self.args[0]}"


def build_scraper(name, settings):
    try:
        cls = SCRAPERS[name]
    except KeyError:
        raise UnknownMarketplaceError(name) from None
    if name not in settings.marketplaces:
        raise UnknownMarketplaceError(name)
    return cls(settings)
