"""
Keyword tables used by the content enricher.

The tables are plain data so a deployment (or a test) can swap in its own
``Lexicon`` without touching the enrichment code.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple

POSITIVE_WORDS = (
    "success", "win", "achievement", "breakthrough", "innovation", "growth",
    "positive", "good", "great", "excellent", "amazing", "wonderful",
    "fantastic", "celebrate",
)

NEGATIVE_WORDS = (
    "crisis", "disaster", "failure", "death", "war", "conflict", "problem",
    "issue", "concern", "worry", "danger", "risk", "threat", "terrible",
    "awful", "horrible",
)

CATEGORY_MOOD_TAGS = {
    "entertainment": ("happy", "relaxed"),
    "sports": ("energetic", "competitive"),
    "health": ("caring", "informed"),
    "science": ("curious", "intelligent"),
    "technology": ("innovative", "progressive"),
}

# keyword -> mood tag
KEYWORD_MOOD_TAGS = {
    "inspire": "inspired",
    "motivation": "inspired",
    "calm": "calm",
    "peace": "calm",
    "exciting": "excited",
    "adventure": "excited",
    "learn": "learning",
    "education": "learning",
}

UNHEALTHY_KEYWORDS = (
    "violence", "murder", "killing", "death", "suicide", "terrorism",
    "war crimes", "graphic", "disturbing", "trauma", "abuse", "assault",
    "harassment", "drug abuse", "addiction", "overdose", "hate crime",
    "discrimination",
)

CATEGORY_IMAGES = {
    "technology": "https://images.unsplash.com/photo-1518709268805-4e9042af2176?w=500",
    "health": "https://images.unsplash.com/photo-1559757148-5c350d0d3c56?w=500",
    "sports": "https://images.unsplash.com/photo-1461896836934-ffe607ba8211?w=500",
    "entertainment": "https://images.unsplash.com/photo-1489599006-98e9ec1c2bb9?w=500",
    "business": "https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=500",
    "science": "https://images.unsplash.com/photo-1507413245164-6160d8298b31?w=500",
    "world": "https://images.unsplash.com/photo-1508175911205-c7c81b0b6b2c?w=500",
    "lifestyle": "https://images.unsplash.com/photo-1506905925346-21bda4d32df4?w=500",
    "food": "https://images.unsplash.com/photo-1504674900247-0877df9cc836?w=500",
    "travel": "https://images.unsplash.com/photo-1488646953014-85cb44e25828?w=500",
    "education": "https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=500",
    "environment": "https://images.unsplash.com/photo-1441974231531-c6227db76b6e?w=500",
    "politics": "https://images.unsplash.com/photo-1529107386315-e1a2ed48a620?w=500",
    "gaming": "https://images.unsplash.com/photo-1552820728-8b83bb6b773f?w=500",
}

DEFAULT_IMAGE = CATEGORY_IMAGES["world"]


@dataclass(frozen=True)
class Lexicon:
    positive_words: Tuple[str, ...] = POSITIVE_WORDS
    negative_words: Tuple[str, ...] = NEGATIVE_WORDS
    category_tags: Dict[str, Tuple[str, ...]] = field(default_factory=lambda: dict(CATEGORY_MOOD_TAGS))
    keyword_tags: Dict[str, str] = field(default_factory=lambda: dict(KEYWORD_MOOD_TAGS))
    unhealthy_keywords: Tuple[str, ...] = UNHEALTHY_KEYWORDS
    category_images: Dict[str, str] = field(default_factory=lambda: dict(CATEGORY_IMAGES))
    default_image: str = DEFAULT_IMAGE
    placeholder_marker: str = "placeholder"
    words_per_minute: int = 200


DEFAULT_LEXICON = Lexicon()
