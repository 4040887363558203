from shared.app_logging.logger import get_logger
from shared.config.categories import CATEGORY_SEED
from shared.schemas.messages import Category
from shared.store.base import ArticleStore

logger = get_logger("database.seed")


def seed_categories(store: ArticleStore) -> int:
    """Write the fixed category table; existing rows are left untouched."""
    created = store.seed_categories(Category(**row) for row in CATEGORY_SEED)
    if created:
        logger.info(f"Seeded {created} news categories")
    return created
