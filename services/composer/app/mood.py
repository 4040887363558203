from typing import Dict, List, Optional, Sequence

from shared.config.categories import MOOD_CATEGORY_MAPPING
from shared.utils.errors import InvalidRequest


def resolve_categories(
    mood: str,
    user_categories: Sequence[str],
    explicit: Optional[Sequence[str]] = None,
    mood_table: Dict[str, List[str]] = MOOD_CATEGORY_MAPPING,
    fallback_size: int = 3,
) -> List[str]:
    """Pick the categories to read for a mood.

    The mood's categories, in table order, that the user also follows; when
    there is no overlap, the first ``fallback_size`` of the mood's categories.
    An explicit filter narrows the result, or replaces it when nothing
    overlaps.
    """
    if mood not in mood_table:
        raise InvalidRequest(f"Unknown mood: {mood}")

    mood_categories = mood_table[mood]
    selected = set(user_categories)
    resolved = [c for c in mood_categories if c in selected]
    if not resolved:
        resolved = list(mood_categories[:fallback_size])

    if explicit:
        narrowed = [c for c in resolved if c in set(explicit)]
        resolved = narrowed or list(dict.fromkeys(explicit))

    return resolved
