"""
Content-generation helpers: picking the planned topic to write and
building the article's structured data.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from autopilot.models import ArticleMeta, ContentPlan, PlannedTopic

SCHEMA_CONTEXT = "https://schema.org"
SCHEMA_AUTHOR = "CabbageSEO"


class AutopilotError(Exception):
    """Base exception for pipeline failures."""


class ArticleNotFoundError(AutopilotError, LookupError):
    """Raised when the requested article index is not in the first calendar week."""

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"No article found at index {index}")


def select_topic(plan: ContentPlan, article_index: int) -> PlannedTopic:
    """Return topic *article_index* of the plan's first calendar week."""
    if article_index < 0 or not plan.calendar:
        raise ArticleNotFoundError(article_index)
    topics = plan.calendar[0].topics
    if article_index >= len(topics):
        raise ArticleNotFoundError(article_index)
    return topics[article_index]


def build_article_schema(
    title: str,
    meta: ArticleMeta,
    published_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """schema.org ``Article`` JSON-LD for a generated article."""
    published_at = published_at or datetime.now(timezone.utc)
    return {
        "@context": SCHEMA_CONTEXT,
        "@type": "Article",
        "headline": title,
        "description": meta.description,
        "keywords": ", ".join(meta.keywords),
        "datePublished": published_at.isoformat(),
        "author": {
            "@type": "Organization",
            "name": SCHEMA_AUTHOR,
        },
    }
