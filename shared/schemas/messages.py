from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Mood(str, Enum):
    HAPPY = "happy"
    EXCITED = "excited"
    MOTIVATED = "motivated"
    RELAXED = "relaxed"
    SAD = "sad"
    STRESSED = "stressed"


class ActionType(str, Enum):
    VIEW = "view"
    BOOKMARK = "bookmark"
    SHARE = "share"
    LIKE = "like"
    READ_COMPLETE = "read-complete"


class RawArticle(BaseModel):
    """An article as returned by a news provider, before enrichment."""

    title: Optional[str] = Field(None, description="Headline")
    description: Optional[str] = Field(None, description="Provider summary, may be missing")
    url: Optional[str] = Field(None, description="Canonical URL")
    image_url: Optional[str] = Field(None, description="Provider image, may be a placeholder")
    source: str = Field("Unknown", description="Publisher name")
    author: Optional[str] = Field(None, description="Byline")
    published_at: datetime = Field(..., description="Original publication timestamp")
    provider: str = Field(..., description="Provider id prefix: 'na' or 'gn'")


class EnrichedArticle(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Provider prefix plus stable content hash")
    title: str
    description: str = ""
    url: str
    image_url: str
    source: str = "Unknown"
    author: str = "Unknown"
    published_at: datetime
    category: str
    sentiment: Sentiment
    mood_tags: List[str] = Field(default_factory=list, description="Ordered, no duplicates")
    read_time: int = Field(1, ge=1, description="Estimated minutes")
    is_healthy_content: bool = True
    is_active: bool = True
    view_count: int = 0
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class ArticlePage(BaseModel):
    items: List[EnrichedArticle]
    cursor: Optional[str] = Field(None, description="Opaque resume token, None on the last page")


class Category(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    display_name: str
    description: str = ""
    icon: str = ""
    color: str = ""
    is_active: bool = True
    sort_order: int = 0


class UserPreference(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    categories: List[str] = Field(default_factory=list)
    setup_complete: bool = False
    preferences: Dict[str, int] = Field(default_factory=dict, description="category -> priority")


class Bookmark(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    article_id: str
    bookmarked_at: datetime


class ActivityEvent(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    article_id: str
    action_type: ActionType
    mood_at_time: Optional[Mood] = None
    timestamp: datetime
    expires_at: datetime
