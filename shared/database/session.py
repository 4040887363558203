from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from shared.app_logging.logger import get_logger
from shared.config.settings import get_settings

from .base import Base
from .models import article, category, user  # noqa: F401  (register tables)

logger = get_logger("database")

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """Create the engine on first use so importing this module never connects."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.database.database_url
        logger.info(f"Connecting to database: {url.split('@')[1] if '@' in url else url}")
        kwargs = {"echo": settings.database.echo, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            kwargs.update(pool_size=10, max_overflow=20, pool_recycle=3600)
        _engine = create_engine(url, **kwargs)
    return _engine


def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine(), expire_on_commit=False)
    return _session_factory


def SessionLocal():
    return get_session_factory()()


def init_db(engine: Optional[Engine] = None):
    """Initialize database tables."""
    try:
        Base.metadata.create_all(bind=engine or get_engine())
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise
