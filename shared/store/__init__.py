"""
Article and user stores, selected by ``STORAGE_BACKEND``.
"""

from typing import Optional, Tuple

from shared.app_logging.logger import get_logger
from shared.config.settings import Settings, get_settings
from shared.store.base import ArticleStore, UserStore

logger = get_logger("store")


def build_stores(service_name: str, settings: Optional[Settings] = None) -> Tuple[ArticleStore, UserStore]:
    """Create the configured article and user stores for a service."""
    settings = settings or get_settings()
    storage = settings.storage

    if storage.backend == "redis":
        from shared.store.kv import RedisArticleStore, RedisUserStore
        from shared.utils.redis_client import get_redis_client

        client = get_redis_client(service_name).client
        logger.info("Using Redis article store")
        return (
            RedisArticleStore(client, storage.article_ttl_days),
            RedisUserStore(client, storage.activity_ttl_days),
        )

    from shared.database.session import get_session_factory, init_db
    from shared.store.sql import SqlArticleStore, SqlUserStore

    init_db()
    factory = get_session_factory()
    logger.info("Using SQL article store")
    return (
        SqlArticleStore(factory, storage.article_ttl_days),
        SqlUserStore(factory, storage.activity_ttl_days),
    )
