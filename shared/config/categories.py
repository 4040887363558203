"""
Reference data for news categories and mood routing.
"""

from typing import Dict, List

# Seeded once into the store; read-only afterwards.
CATEGORY_SEED: List[Dict] = [
    {"name": "technology", "display_name": "Technology", "description": "Latest tech news and innovations", "icon": "laptop-outline", "color": "#007AFF", "sort_order": 1},
    {"name": "health", "display_name": "Health & Wellness", "description": "Health tips and medical breakthroughs", "icon": "fitness-outline", "color": "#34C759", "sort_order": 2},
    {"name": "sports", "display_name": "Sports", "description": "Sports news and updates", "icon": "football-outline", "color": "#FF9500", "sort_order": 3},
    {"name": "entertainment", "display_name": "Entertainment", "description": "Movies, music, and celebrity news", "icon": "musical-notes-outline", "color": "#AF52DE", "sort_order": 4},
    {"name": "business", "display_name": "Business", "description": "Business and financial news", "icon": "briefcase-outline", "color": "#FF3B30", "sort_order": 5},
    {"name": "science", "display_name": "Science", "description": "Scientific discoveries and research", "icon": "flask-outline", "color": "#5AC8FA", "sort_order": 6},
    {"name": "world", "display_name": "World News", "description": "International news and events", "icon": "earth-outline", "color": "#FFCC02", "sort_order": 7},
    {"name": "lifestyle", "display_name": "Lifestyle", "description": "Fashion, travel, and lifestyle content", "icon": "heart-outline", "color": "#FF2D92", "sort_order": 8},
    {"name": "food", "display_name": "Food & Cooking", "description": "Recipes and culinary trends", "icon": "restaurant-outline", "color": "#32D74B", "sort_order": 9},
    {"name": "travel", "display_name": "Travel", "description": "Travel guides and destination news", "icon": "airplane-outline", "color": "#007AFF", "sort_order": 10},
    {"name": "education", "display_name": "Education", "description": "Learning resources and educational news", "icon": "school-outline", "color": "#5856D6", "sort_order": 11},
    {"name": "environment", "display_name": "Environment", "description": "Climate and environmental news", "icon": "leaf-outline", "color": "#30B0C7", "sort_order": 12},
    {"name": "politics", "display_name": "Politics", "description": "Political news and analysis", "icon": "library-outline", "color": "#8E8E93", "sort_order": 13},
    {"name": "gaming", "display_name": "Gaming", "description": "Video game news and reviews", "icon": "game-controller-outline", "color": "#FF6B35", "sort_order": 14},
]

# Ordered: earlier entries are preferred when the user has no overlap.
MOOD_CATEGORY_MAPPING: Dict[str, List[str]] = {
    "happy": ["lifestyle", "entertainment", "food", "travel", "sports"],
    "excited": ["technology", "gaming", "entertainment", "sports"],
    "motivated": ["business", "health", "education", "technology"],
    "relaxed": ["lifestyle", "food", "travel", "health", "environment"],
    "sad": ["health", "lifestyle", "education", "environment"],
    "stressed": ["health", "lifestyle", "environment", "education"],
}

# Moods that only see healthy, non-negative articles with no denylisted titles.
VULNERABLE_MOODS = frozenset({"sad", "stressed"})

# Moods that see healthy articles of any sentiment.
UPLIFTING_MOODS = frozenset({"excited", "motivated"})

# Provider category names for each store category.
NEWSAPI_CATEGORY_MAPPING: Dict[str, str] = {
    "technology": "technology",
    "health": "health",
    "sports": "sports",
    "entertainment": "entertainment",
    "business": "business",
    "science": "science",
    "world": "general",
    "politics": "general",
    "gaming": "technology",
    "lifestyle": "general",
    "food": "general",
    "travel": "general",
    "education": "general",
    "environment": "science",
}

GNEWS_CATEGORY_MAPPING: Dict[str, str] = {
    "technology": "technology",
    "health": "health",
    "sports": "sports",
    "entertainment": "entertainment",
    "business": "business",
    "science": "science",
    "world": "world",
    "politics": "nation",
    "gaming": "technology",
    "environment": "science",
}
