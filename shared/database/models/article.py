from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, func

from ..base import Base


class Article(Base):
    __tablename__ = 'news_articles'

    id = Column(String(64), primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    url = Column(Text, unique=True, nullable=False, index=True)
    image_url = Column(Text, nullable=False)
    source = Column(String, nullable=False, default="Unknown")
    author = Column(String, nullable=False, default="Unknown")
    published_at = Column(DateTime, nullable=False, index=True)
    category = Column(String, nullable=False, index=True)
    sentiment = Column(String(16), nullable=False, default="neutral")
    # JSON-encoded list; the mood index lives in article_mood_tags
    mood_tags = Column(Text, nullable=False, default="[]")
    read_time = Column(Integer, nullable=False, default=1)
    is_healthy_content = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    view_count = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('ix_news_articles_category_published', 'category', 'published_at'),
    )


class ArticleMoodTag(Base):
    __tablename__ = 'article_mood_tags'

    article_id = Column(String(64), ForeignKey('news_articles.id', ondelete='CASCADE'), primary_key=True)
    tag = Column(String(32), primary_key=True)
    published_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('ix_article_mood_tags_tag_published', 'tag', 'published_at'),
    )
