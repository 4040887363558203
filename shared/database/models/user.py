from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint

from ..base import Base


class UserNewsPreference(Base):
    __tablename__ = 'user_news_preferences'

    user_id = Column(String, primary_key=True)
    # JSON-encoded list of category names and category -> priority map
    categories = Column(Text, nullable=False, default="[]")
    setup_complete = Column(Boolean, nullable=False, default=False)
    preferences = Column(Text, nullable=False, default="{}")


class UserBookmark(Base):
    __tablename__ = 'user_bookmarks'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    article_id = Column(String(64), nullable=False)
    bookmarked_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'article_id', name='uq_user_bookmarks_user_article'),
    )


class UserNewsActivity(Base):
    __tablename__ = 'user_news_activity'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    article_id = Column(String(64), nullable=False)
    action_type = Column(String(16), nullable=False)
    mood_at_time = Column(String(16), nullable=True)
    timestamp = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
