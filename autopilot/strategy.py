"""
Content calendar construction.

Ideas come from the LLM and are trusted as-is (titles, keywords, traffic
estimates are not validated). When the LLM gives nothing usable the plan
falls back to one "Complete Guide" per top cluster.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from autopilot.models import CalendarWeek, ContentPlan, KeywordCluster, PlannedTopic

logger = logging.getLogger("autopilot.strategy")

FALLBACK_WORD_ESTIMATE = 1500
FALLBACK_CLUSTER_LIMIT = 4
FIRST_WEEK_TOPICS = 4
FIRST_DEADLINE_DAYS = 3
DEADLINE_SPACING_DAYS = 7
WEEKS_PER_PLAN = 4
DEFAULT_TOPIC = "SEO"
DEFAULT_CLUSTER_ID = "default"


def _deadline(now: datetime, slot: int) -> datetime:
    return now + timedelta(days=slot * DEADLINE_SPACING_DAYS + FIRST_DEADLINE_DAYS)


def ideas_topic(clusters: List[KeywordCluster]) -> str:
    """Topic sent to the ideation prompt: the top cluster's name."""
    return clusters[0].name if clusters else DEFAULT_TOPIC


def ideas_requested(articles_per_week: int) -> int:
    return articles_per_week * WEEKS_PER_PLAN


def create_fallback_plan(
    clusters: List[KeywordCluster],
    now: Optional[datetime] = None,
) -> ContentPlan:
    """One guide per top-4 cluster, a week apart, starting three days out."""
    now = now or datetime.now(timezone.utc)
    topics = [
        PlannedTopic(
            cluster_id=cluster.name,
            title=f"Complete Guide to {cluster.name}",
            target_keyword=cluster.keywords[0].keyword if cluster.keywords else cluster.name,
            estimated_words=FALLBACK_WORD_ESTIMATE,
            deadline=_deadline(now, i),
        )
        for i, cluster in enumerate(clusters[:FALLBACK_CLUSTER_LIMIT])
    ]

    return ContentPlan(
        clusters=list(clusters),
        calendar=[CalendarWeek(week=1, topics=topics)],
        total_articles=len(topics),
        estimated_traffic_potential=0,
    )


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def build_plan_from_ideas(
    clusters: List[KeywordCluster],
    ideas: List[Dict[str, Any]],
    articles_per_week: int,
    now: Optional[datetime] = None,
) -> Optional[ContentPlan]:
    """
    Lay LLM article ideas out on a weekly calendar.

    Week 1 takes the first four usable ideas; any remainder is spread
    ``articles_per_week`` per week after it. Every topic is attributed to the top cluster, since ideation only ran
    for that one. Returns ``None`` when no idea has both a title and a
    target keyword, so the caller can fall back.
    """
    now = now or datetime.now(timezone.utc)
    cluster_id = clusters[0].name if clusters else DEFAULT_CLUSTER_ID

    usable = [
        idea for idea in ideas
        if isinstance(idea, dict) and idea.get("title") and idea.get("keyword")
    ]
    if not usable:
        return None
    if len(usable) < len(ideas):
        logger.debug("Dropped %d malformed ideas", len(ideas) - len(usable))

    per_week = max(1, articles_per_week)
    batches = [usable[:FIRST_WEEK_TOPICS]]
    rest = usable[FIRST_WEEK_TOPICS:]
    batches.extend(rest[i:i + per_week] for i in range(0, len(rest), per_week))

    calendar: List[CalendarWeek] = []
    traffic = 0

    for week_index, batch in enumerate(batches):
        topics = []
        for idea in batch:
            topics.append(
                PlannedTopic(
                    cluster_id=cluster_id,
                    title=str(idea["title"]),
                    target_keyword=str(idea["keyword"]),
                    estimated_words=_as_int(idea.get("estimated_words"), FALLBACK_WORD_ESTIMATE)
                    or FALLBACK_WORD_ESTIMATE,
                    deadline=_deadline(now, week_index),
                )
            )
            traffic += _as_int(idea.get("estimated_traffic"))
        calendar.append(CalendarWeek(week=week_index + 1, topics=topics))

    return ContentPlan(
        clusters=list(clusters),
        calendar=calendar,
        total_articles=len(usable),
        estimated_traffic_potential=traffic,
    )
