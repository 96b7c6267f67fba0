# phone_tracker/context.py
"""Application context: the long-lived objects built once at startup."""
from dataclasses import dataclass, field
from functools import partial
from typing import Optional
from .classifier import Classifier
from .config import Settings, load_settings
from .db import create_db_engine, init_db, make_session_factory
from .notifications import Notifier
from .pipeline import run_scraper
from .scheduler import JobManager
from .services import PhoneService


@dataclass
class AppContext:
    settings: Settings
    engine: object
    session_factory: object
    phone_service: PhoneService
    notifier: Notifier
    classifier: Classifier
    job_manager: Optional[JobManager] = field(default=None)

    def close(self):
        if self.job_manager is not None:
            self.job_manager.shutdown()
        self.engine.dispose()


def create_context(settings=None, engine=None, create_tables=True, scheduler=None) -> AppContext:
    settings = settings or load_settings()
    engine = engine or create_db_engine(
        settings.database_url, pool_size=settings.db_pool_size, max_overflow=settings.db_max_overflow
    )
    if create_tables:
        init_db(engine)
    session_factory = make_session_factory(engine)
    ctx = AppContext(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        phone_service=PhoneService(session_factory),
        notifier=Notifier(settings.notify_webhook_url),
        classifier=Classifier(settings.ai),
    )
    ctx.job_manager = JobManager(session_factory, settings, partial(run_scraper, ctx), scheduler=scheduler)
    return ctx
