"""
Keyword and age filter applied per source before aggregation.

Matching is a case-insensitive substring test on "title description", so
short keywords over-match ("AI" is inside "said"). Sources that need
precision should configure longer phrases.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ..schemas import NewsItem, SourceFilterConfig


def filter_relevant_news(
    items: List[NewsItem],
    config: SourceFilterConfig,
    now: Optional[datetime] = None,
) -> List[NewsItem]:
    """Keep items newer than max_age_days that mention at least one keyword.

    With no keywords configured every item is returned and age is not
    checked.
    """
    if not config.filter_keywords:
        return list(items)

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    cutoff = now - timedelta(days=config.max_age_days)
    keywords = [k.lower() for k in config.filter_keywords]

    relevant = []
    for item in items:
        if item.published_at < cutoff:
            continue
        haystack = f"{item.title} {item.description or ''}".lower()
        if any(k in haystack for k in keywords):
            relevant.append(item)
    return relevant
