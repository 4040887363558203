from typing import Iterable, List

from shared.schemas.messages import RawArticle


def dedupe_by_url(articles: Iterable[RawArticle]) -> List[RawArticle]:
    """Drop repeated URLs, keeping the first occurrence and the input order."""
    seen = set()
    unique = []
    for article in articles:
        if article.url in seen:
            continue
        seen.add(article.url)
        unique.append(article)
    return unique
