# phone_tracker/db.py
"""Database engine and session utilities.

The engine (and its connection pool) is built once at startup by the
application context and shared by every component.
"""
from sqlalchemy import create_engine
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import sessionmaker, declarative_base

Base = declarative_base()


def create_db_engine(database_url, pool_size=5, max_overflow=10, **kwargs):
    if database_url.startswith("sqlite"):
        # pool sizing does not apply to SQLite's default pools
        return create_engine(database_url, connect_args={"check_same_thread": False}, **kwargs)
    # tuned pool settings for cloud DB
    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        **kwargs
    )


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine):
    from . import models  # noqa: F401 ensure models are imported so tables are known
    Base.metadata.create_all(bind=engine)


def upsert_insert(session, table):
    """Return a dialect specific INSERT supporting ``on_conflict_do_update``."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(table)
    return sqlite_insert(table)
