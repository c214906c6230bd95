"""
Database helpers: engine/session setup and the request-scoped session dependency.
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from starlette.requests import HTTPConnection

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(url: str):
    connect_args = {}
    if url.startswith("sqlite"):
        # handlers run on the threadpool
        connect_args["check_same_thread"] = False
    return create_engine(url, connect_args=connect_args)


def create_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine) -> None:
    """Create every table that does not exist yet."""
    # models register themselves on Base when imported
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", engine.url.render_as_string(hide_password=True))


def get_db(conn: HTTPConnection):
    db = conn.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
