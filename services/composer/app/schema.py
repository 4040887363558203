from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from shared.schemas.messages import ActionType, Category, EnrichedArticle, Mood


class FeedRequest(BaseModel):
    mood: Optional[str] = None
    categories: Optional[List[str]] = None
    source: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0
    user_id: Optional[str] = None


class FeedArticle(EnrichedArticle):
    is_bookmarked: bool = False


class Pagination(BaseModel):
    limit: int
    offset: int
    total_count: int = Field(..., description="Matches before the mood safety filter")
    has_more: bool
    next_offset: int


class FeedResponse(BaseModel):
    articles: List[FeedArticle]
    pagination: Pagination
    mood: Optional[str] = None
    categories: Optional[List[str]] = Field(None, description="Categories actually queried")


class CategoryPageOut(BaseModel):
    articles: List[EnrichedArticle]
    cursor: Optional[str] = None


class CategoriesOut(BaseModel):
    categories: List[Category]


class ActivityIn(BaseModel):
    action_type: ActionType
    mood: Optional[Mood] = None


class PreferencesIn(BaseModel):
    categories: List[str] = Field(default_factory=list)
    setup_complete: bool = False
    preferences: Dict[str, int] = Field(default_factory=dict)


class StatusOut(BaseModel):
    status: str
    article_id: Optional[str] = None


class BookmarkIn(BaseModel):
    mood: Optional[Mood] = None
