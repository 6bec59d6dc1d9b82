"""
Keyword analysis helpers: seed extraction, cluster assembly and
prioritisation.

All functions are pure; the engine wires them to the keyword provider and
the LLM.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any, Dict, Iterable, List

from autopilot.models import (
    DEFAULT_CPC,
    DEFAULT_DIFFICULTY,
    DEFAULT_VOLUME,
    ContentType,
    DiscoveredPage,
    KeywordCluster,
    KeywordMetrics,
    Priority,
    SearchIntent,
)

logger = logging.getLogger("autopilot.analysis")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

STOPWORDS = frozenset({"the", "and", "for", "with", "from", "this", "that", "what", "how"})
MIN_TOKEN_LENGTH = 4
MAX_SEED_KEYWORDS = 20
SEED_QUERY_SIZE = 10
SUGGESTION_LIMIT = 100

HIGH_PRIORITY_MIN_VOLUME = 1000
HIGH_PRIORITY_MAX_DIFFICULTY = 40
LOW_PRIORITY_MAX_VOLUME = 100
LOW_PRIORITY_MIN_DIFFICULTY = 70

PRIORITY_ORDER = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}

_NON_WORD_RE = re.compile(r"[^\w\s]")


# ---------------------------------------------------------------------------
# Seeds
# ---------------------------------------------------------------------------


def tokenize_title(title: str) -> List[str]:
    """Lowercase *title*, strip punctuation and keep meaningful tokens."""
    words = _NON_WORD_RE.sub(" ", title.lower()).split()
    return [w for w in words if len(w) >= MIN_TOKEN_LENGTH and w not in STOPWORDS]


def extract_seed_keywords(pages: Iterable[DiscoveredPage]) -> List[str]:
    """Unique title tokens across *pages*, first-seen order, capped at 20."""
    seen: Dict[str, None] = {}
    for page in pages:
        for word in tokenize_title(page.title):
            seen.setdefault(word, None)
            if len(seen) >= MAX_SEED_KEYWORDS:
                return list(seen)
    return list(seen)


def build_seed_query(seeds: List[str]) -> str:
    return ",".join(seeds[:SEED_QUERY_SIZE])


# ---------------------------------------------------------------------------
# Clusters
# ---------------------------------------------------------------------------


def build_clusters(
    raw_clusters: List[Dict[str, Any]],
    keyword_data: List[KeywordMetrics],
) -> List[KeywordCluster]:
    """
    Attach provider metrics to the keyword groups proposed by the LLM.

    Keywords the provider never reported get neutral defaults
    (volume 0, difficulty 50, cpc 0).
    """
    by_keyword = {k.keyword: k for k in keyword_data}
    clusters: List[KeywordCluster] = []

    for raw in raw_clusters:
        if not isinstance(raw, dict):
            continue
        name = str(raw.get("name") or "").strip()
        if not name:
            logger.debug("Skipping unnamed cluster: %r", raw)
            continue

        metrics = []
        for kw in raw.get("keywords") or []:
            kw = str(kw)
            found = by_keyword.get(kw)
            metrics.append(
                found
                if found is not None
                else KeywordMetrics(
                    keyword=kw,
                    volume=DEFAULT_VOLUME,
                    difficulty=DEFAULT_DIFFICULTY,
                    cpc=DEFAULT_CPC,
                )
            )

        clusters.append(
            KeywordCluster(
                name=name,
                intent=SearchIntent.INFORMATIONAL,
                keywords=metrics,
                priority=Priority.MEDIUM,
                suggested_content_type=ContentType.GUIDE,
            )
        )

    return clusters


def assign_priority(cluster: KeywordCluster) -> Priority:
    """
    High volume with low difficulty is high priority; thin volume or hard
    competition is low priority. An empty cluster stays medium.
    """
    if not cluster.keywords:
        return Priority.MEDIUM

    volume = cluster.average_volume
    difficulty = cluster.average_difficulty

    if volume < LOW_PRIORITY_MAX_VOLUME or difficulty > LOW_PRIORITY_MIN_DIFFICULTY:
        return Priority.LOW
    if volume > HIGH_PRIORITY_MIN_VOLUME and difficulty < HIGH_PRIORITY_MAX_DIFFICULTY:
        return Priority.HIGH
    return Priority.MEDIUM


def prioritize_clusters(clusters: List[KeywordCluster]) -> List[KeywordCluster]:
    """Return copies of *clusters* with priorities set, high first (stable)."""
    prioritized = [replace(c, priority=assign_priority(c)) for c in clusters]
    return sorted(prioritized, key=lambda c: PRIORITY_ORDER[c.priority])
