from typing import Optional

from .core.config import settings
from .core.log import logger, setup_logging
from .db.session import SessionLocal, engine, init_db, make_engine, make_session_factory
from .services.store import DeviceStore


def create_store(database_url: Optional[str] = None, **options) -> DeviceStore:
    """Configure logging, make sure the devices table exists and return a store.

    Without ``database_url`` the process-wide engine built from ``DATABASE_URL``
    is used.
    """
    setup_logging()
    if database_url:
        bind = make_engine(database_url, echo=settings.SQL_ECHO)
        session_factory = make_session_factory(bind)
    else:
        bind, session_factory = engine, SessionLocal
    init_db(bind)
    logger.info(f"Device registry ready on {bind.url}")
    return DeviceStore(session_factory=session_factory, **options)
