from typing import List, Optional

from shared.app_logging.logger import get_logger
from shared.schemas.messages import ActionType, EnrichedArticle, Mood, UserPreference
from shared.store.base import ArticleStore, UserStore
from shared.utils.errors import InvalidRequest, Outcome

logger = get_logger("composer.activity")


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise InvalidRequest("A user id is required")
    return user_id


def _parse_action(action_type) -> ActionType:
    try:
        return ActionType(action_type)
    except ValueError as e:
        raise InvalidRequest(f"Unknown action type: {action_type}") from e


def _parse_mood(mood) -> Optional[Mood]:
    if mood is None:
        return None
    try:
        return Mood(mood)
    except ValueError as e:
        raise InvalidRequest(f"Unknown mood: {mood}") from e


class ActivityService:
    """Bookmarks, activity tracking and preference storage for a user."""

    def __init__(self, articles: ArticleStore, users: UserStore, max_limit: int = 50):
        self.articles = articles
        self.users = users
        self.max_limit = max_limit

    def bookmark(self, user_id: str, article_id: str, mood=None) -> Outcome:
        user_id = _require_user(user_id)
        mood = _parse_mood(mood)
        if self.articles.get(article_id) is None:
            return Outcome.NOT_FOUND
        if self.users.add_bookmark(user_id, article_id):
            self.users.record_activity(self.users.new_activity(user_id, article_id, ActionType.BOOKMARK, mood))
            logger.info(f"User {user_id} bookmarked {article_id}")
        return Outcome.OK

    def unbookmark(self, user_id: str, article_id: str) -> Outcome:
        user_id = _require_user(user_id)
        return self.users.remove_bookmark(user_id, article_id)

    def list_bookmarks(self, user_id: str, limit: int = 20, offset: int = 0) -> List[EnrichedArticle]:
        """A page of bookmarked articles, most recently bookmarked first.

        Bookmarks whose article has since expired are dropped from the page.
        """
        user_id = _require_user(user_id)
        if limit < 1:
            raise InvalidRequest("limit must be at least 1")
        if offset < 0:
            raise InvalidRequest("offset must be zero or greater")
        articles = []
        for bookmark in self.users.list_bookmarks(user_id, min(limit, self.max_limit), offset):
            article = self.articles.get(bookmark.article_id)
            if article is not None:
                articles.append(article)
        return articles

    def track_activity(self, user_id: str, article_id: str, action_type, mood=None) -> Outcome:
        user_id = _require_user(user_id)
        action = _parse_action(action_type)
        mood = _parse_mood(mood)

        if action is ActionType.VIEW:
            outcome = Outcome.OK if self.articles.increment_view_count(article_id) else Outcome.NOT_FOUND
        else:
            outcome = Outcome.OK if self.articles.get(article_id) else Outcome.NOT_FOUND
        if outcome is Outcome.NOT_FOUND:
            logger.info(f"Activity {action.value} for unknown article {article_id}")
            return outcome

        self.users.record_activity(self.users.new_activity(user_id, article_id, action, mood))
        return Outcome.OK

    def track_view(self, user_id: str, article_id: str, mood=None) -> Outcome:
        return self.track_activity(user_id, article_id, ActionType.VIEW, mood)

    def get_preferences(self, user_id: str) -> UserPreference:
        return self.users.get_preferences(_require_user(user_id))

    def save_preferences(self, user_id: str, categories, setup_complete: bool, preferences) -> UserPreference:
        user_id = _require_user(user_id)
        preference = UserPreference(
            user_id=user_id,
            categories=list(dict.fromkeys(categories)),
            setup_complete=setup_complete,
            preferences=dict(preferences),
        )
        return self.users.save_preferences(preference)
