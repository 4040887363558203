from datetime import datetime, timezone

from services.collector.dedupe import dedupe_by_url
from shared.schemas.messages import RawArticle


def _raw(url, provider):
    return RawArticle(
        title=f"{provider} {url}",
        url=url,
        published_at=datetime(2025, 7, 20, tzinfo=timezone.utc),
        provider=provider,
    )


def test_first_seen_wins_across_providers():
    provider_a = [_raw("u1", "na"), _raw("u2", "na")]
    provider_b = [_raw("u2", "gn"), _raw("u3", "gn")]

    unique = dedupe_by_url(provider_a + provider_b)

    assert [a.url for a in unique] == ["u1", "u2", "u3"]
    assert unique[1].provider == "na"


def test_empty_and_repeated_input():
    assert dedupe_by_url([]) == []
    same = [_raw("u1", "na")] * 3
    assert len(dedupe_by_url(same)) == 1
