from sqlalchemy import Boolean, Column, Integer, String, Text

from ..base import Base


class NewsCategory(Base):
    __tablename__ = 'news_categories'

    name = Column(String(32), primary_key=True)
    display_name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    icon = Column(String, nullable=False, default="")
    color = Column(String(16), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
