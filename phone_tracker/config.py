# phone_tracker/config.py
"""Runtime configuration.

Everything is read once from the environment (``.env`` files are honoured
through python-dotenv) and frozen into plain dataclasses that the rest of
the application receives explicitly.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from dotenv import load_dotenv

load_dotenv()

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]


@dataclass(frozen=True)
class StoreConfig:
    id: int
    name: str
    url: str


DEFAULT_STORES = [
    StoreConfig(4105, "AM Tech", "https://www.ouedkniss.com/store/4105/am-tech/accueil"),
    StoreConfig(6442, "Abdou Cabba Store", "https://www.ouedkniss.com/store/6442/abdou-cabba-store/accueil"),
    StoreConfig(15321, "Louail Phone", "https://www.ouedkniss.com/store/15321/louail-phone/accueil"),
    StoreConfig(13219, "Mega Phone", "https://www.ouedkniss.com/store/13219/mega-phone/accueil"),
    StoreConfig(19137, "Phone Lamine", "https://www.ouedkniss.com/store/19137/phone-lamine/accueil"),
    StoreConfig(17937, "IT Device", "https://www.ouedkniss.com/store/17937/it-device/accueil"),
    StoreConfig(14223, "AD Tech", "https://www.ouedkniss.com/store/14223/ad-tech/accueil"),
    StoreConfig(8063, "Mobily", "https://www.ouedkniss.com/store/8063/mobily/accueil"),
    StoreConfig(29592, "Destock Phone Algerie", "https://www.ouedkniss.com/store/29592/destock-phone-algerie/accueil"),
    StoreConfig(31741, "Lempreinte de Telephone", "https://www.ouedkniss.com/store/31741/lempreinte-de-telephone/accueil"),
]


@dataclass(frozen=True)
class Credentials:
    email: Optional[str] = None
    password: Optional[str] = None

    @property
    def complete(self) -> bool:
        return bool(self.email and self.password)


@dataclass(frozen=True)
class MarketplaceConfig:
    name: str
    base_url: str
    search_url: str
    schedule_hours: int
    enabled: bool = True
    credentials: Optional[Credentials] = None
    stores: List[StoreConfig] = field(default_factory=list)
    # marketplace recorded on the listings; differs from ``name`` for the store crawl
    listing_marketplace: Optional[str] = None

    @property
    def marketplace(self) -> str:
        return self.listing_marketplace or self.name


@dataclass(frozen=True)
class ScrapingConfig:
    delay_min_ms: int = 2000
    delay_max_ms: int = 5000
    max_retries: int = 3
    request_timeout_ms: int = 30000
    proxy: Optional[str] = None
    headless: bool = True
    cookies_file: Optional[str] = None


@dataclass(frozen=True)
class AIConfig:
    url: str = "http://localhost:11434"
    model: str = "llama3.2:3b"
    probe_timeout_s: float = 2.0
    request_timeout_s: float = 60.0


@dataclass(frozen=True)
class Settings:
    database_url: str
    scraping: ScrapingConfig
    marketplaces: Dict[str, MarketplaceConfig]
    user_agents: List[str] = field(default_factory=lambda: list(DEFAULT_USER_AGENTS))
    ai: AIConfig = field(default_factory=AIConfig)
    db_pool_size: int = 5
    db_max_overflow: int = 10
    log_level: str = "INFO"
    timezone: str = "Africa/Algiers"
    notify_webhook_url: Optional[str] = None


def _env_int(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def normalize_database_url(url: str) -> str:
    # SQLAlchemy 2.x doesn't accept 'postgres://'
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg2://", 1)
    return url


def default_marketplaces() -> Dict[str, MarketplaceConfig]:
    return {
        "ouedkniss": MarketplaceConfig(
            name="ouedkniss",
            base_url="https://www.ouedkniss.com",
            search_url="https://www.ouedkniss.com/telephones/1",
            schedule_hours=_env_int("OUEDKNISS_SCHEDULE_HOURS", 6),
            enabled=_env_bool("OUEDKNISS_ENABLED", True),
        ),
        "ouedkniss_stores": MarketplaceConfig(
            name="ouedkniss_stores",
            base_url="https://www.ouedkniss.com",
            search_url="https://www.ouedkniss.com/stores",
            schedule_hours=_env_int("OUEDKNISS_STORES_SCHEDULE_HOURS", 12),
            enabled=_env_bool("OUEDKNISS_STORES_ENABLED", False),
            stores=list(DEFAULT_STORES),
            listing_marketplace="ouedkniss",
        ),
        "jumia": MarketplaceConfig(
            name="jumia",
            base_url="https://www.jumia.com.dz",
            search_url="https://www.jumia.com.dz/telephone-tablette/",
            schedule_hours=_env_int("JUMIA_SCHEDULE_HOURS", 4),
            enabled=_env_bool("JUMIA_ENABLED", True),
        ),
        # strong anti-scraping protection, opt-in only
        "facebook": MarketplaceConfig(
            name="facebook",
            base_url="https://www.facebook.com/marketplace",
            search_url="https://www.facebook.com/marketplace/category/cell-phones",
            schedule_hours=_env_int("FACEBOOK_SCHEDULE_HOURS", 8),
            enabled=_env_bool("FACEBOOK_ENABLED", False),
            credentials=Credentials(
                email=os.getenv("FACEBOOK_EMAIL"),
                password=os.getenv("FACEBOOK_PASSWORD"),
            ),
        ),
    }


def load_settings() -> Settings:
    delay_min = _env_int("SCRAPE_DELAY_MIN", 2000)
    delay_max = _env_int("SCRAPE_DELAY_MAX", 5000)
    if delay_min > delay_max:
        delay_min, delay_max = delay_max, delay_min

    scraping = ScrapingConfig(
        delay_min_ms=delay_min,
        delay_max_ms=delay_max,
        max_retries=max(1, _env_int("MAX_RETRIES", 3)),
        request_timeout_ms=_env_int("REQUEST_TIMEOUT", 30000),
        proxy=os.getenv("PROXY_URL") or None,
        headless=_env_bool("HEADLESS", True),
        cookies_file=os.getenv("PLAYWRIGHT_COOKIES_FILE") or None,
    )

    agents = os.getenv("USER_AGENTS")
    user_agents = [a.strip() for a in agents.split(",") if a.strip()] if agents else list(DEFAULT_USER_AGENTS)

    return Settings(
        database_url=normalize_database_url(os.getenv("POSTGRES_URL", "sqlite:///./phone_tracker.db")),
        scraping=scraping,
        marketplaces=default_marketplaces(),
        user_agents=user_agents,
        ai=AIConfig(
            url=os.getenv("OLLAMA_URL", "http://localhost:11434"),
            model=os.getenv("OLLAMA_MODEL", "llama3.2:3b"),
        ),
        db_pool_size=_env_int("DB_POOL_SIZE", 5),
        db_max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        timezone=os.getenv("SCHEDULER_TIMEZONE", "Africa/Algiers"),
        notify_webhook_url=os.getenv("NOTIFY_WEBHOOK_URL") or None,
    )
