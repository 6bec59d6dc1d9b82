"""
Data model for the Autopilot pipeline.

Every artifact a run produces is a dataclass here. None of them is
persisted by the pipeline; ``to_dict()`` gives a JSON-safe view so callers
can store or ship them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VALID_TONES = ("professional", "casual", "technical", "friendly")

DEFAULT_VOLUME = 0
DEFAULT_DIFFICULTY = 50
DEFAULT_CPC = 0.0


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def _serialize(value: Any) -> Any:
    """Recursively convert dataclasses, enums and datetimes to JSON-safe values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class _Serializable:
    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a plain, JSON-safe dictionary."""
        return _serialize(self)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class AutopilotPhase(str, Enum):
    """Phases reported through the progress callback."""
    DISCOVERY = "discovery"
    ANALYSIS = "analysis"
    STRATEGY = "strategy"
    GENERATION = "generation"
    OPTIMIZATION = "optimization"
    PUBLISHING = "publishing"
    MONITORING = "monitoring"


class PageType(str, Enum):
    PAGE = "page"
    POST = "post"
    CATEGORY = "category"
    PRODUCT = "product"


class SearchIntent(str, Enum):
    INFORMATIONAL = "informational"
    COMMERCIAL = "commercial"
    TRANSACTIONAL = "transactional"
    NAVIGATIONAL = "navigational"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContentType(str, Enum):
    GUIDE = "guide"
    LISTICLE = "listicle"
    COMPARISON = "comparison"
    HOW_TO = "how-to"
    REVIEW = "review"


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WordPressCredentials(_Serializable):
    """Connection details for a WordPress site using an application password."""

    site_url: str
    username: str
    application_password: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "site_url", self.site_url.rstrip("/"))


@dataclass(frozen=True)
class AutopilotConfig(_Serializable):
    """Per-run configuration. Immutable for the duration of a run."""

    site_url: str
    organization_id: str
    site_id: str
    wordpress: Optional[WordPressCredentials] = None
    auto_publish: bool = False
    content_tone: str = "professional"
    target_audience: str = "general audience"
    primary_language: str = "en"
    articles_per_week: int = 2
    location: str = "United States"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not self.site_url or not self.site_url.strip():
            raise ValueError("site_url cannot be empty")
        object.__setattr__(self, "site_url", self.site_url.strip().rstrip("/"))
        if self.content_tone not in VALID_TONES:
            raise ValueError(
                f"Invalid content_tone '{self.content_tone}'. "
                f"Must be one of: {VALID_TONES}"
            )
        if self.articles_per_week < 1:
            raise ValueError(
                f"articles_per_week must be at least 1, got {self.articles_per_week}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> AutopilotConfig:
        """
        Build a config from a dict using either snake_case keys or the
        camelCase keys of the dashboard API payload.
        """
        def pick(snake: str, camel: str, default: Any = None) -> Any:
            if snake in data:
                return data[snake]
            return data.get(camel, default)

        wordpress = None
        wp = data.get("wordpress")
        if wp:
            wordpress = WordPressCredentials(
                site_url=wp.get("site_url", wp.get("siteUrl", "")),
                username=wp.get("username", ""),
                application_password=wp.get(
                    "application_password", wp.get("applicationPassword", "")
                ),
            )

        return cls(
            site_url=pick("site_url", "siteUrl", ""),
            organization_id=pick("organization_id", "organizationId", ""),
            site_id=pick("site_id", "siteId", ""),
            wordpress=wordpress,
            auto_publish=bool(pick("auto_publish", "autoPublish", False)),
            content_tone=pick("content_tone", "contentTone", "professional"),
            target_audience=pick("target_audience", "targetAudience", "general audience"),
            primary_language=pick("primary_language", "primaryLanguage", "en"),
            articles_per_week=int(pick("articles_per_week", "articlesPerWeek", 2)),
            location=pick("location", "location", "United States"),
        )


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


@dataclass
class DiscoveredPage(_Serializable):
    url: str
    title: str
    type: PageType = PageType.PAGE
    last_modified: Optional[str] = None


@dataclass
class DiscoveryResult(_Serializable):
    """Pages sampled from the sitemap plus detected CMS technologies."""

    pages: List[DiscoveredPage] = field(default_factory=list)
    sitemap_urls: List[str] = field(default_factory=list)
    technologies: List[str] = field(default_factory=list)
    estimated_pages: int = 0


# ---------------------------------------------------------------------------
# Keywords
# ---------------------------------------------------------------------------


@dataclass
class KeywordMetrics(_Serializable):
    """Search metrics for one keyword as reported by the keyword provider."""

    keyword: str
    volume: int = DEFAULT_VOLUME
    difficulty: float = DEFAULT_DIFFICULTY
    cpc: float = DEFAULT_CPC
    competition: float = 0.0


@dataclass
class KeywordCluster(_Serializable):
    """A topical group of keywords. ``priority`` is derived, see analysis."""

    name: str
    intent: SearchIntent = SearchIntent.INFORMATIONAL
    keywords: List[KeywordMetrics] = field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    suggested_content_type: ContentType = ContentType.GUIDE

    @property
    def average_volume(self) -> float:
        if not self.keywords:
            return 0.0
        return sum(k.volume for k in self.keywords) / len(self.keywords)

    @property
    def average_difficulty(self) -> float:
        if not self.keywords:
            return 0.0
        return sum(k.difficulty for k in self.keywords) / len(self.keywords)


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


@dataclass
class PlannedTopic(_Serializable):
    cluster_id: str
    title: str
    target_keyword: str
    estimated_words: int
    deadline: datetime


@dataclass
class CalendarWeek(_Serializable):
    week: int
    topics: List[PlannedTopic] = field(default_factory=list)


@dataclass
class ContentPlan(_Serializable):
    """In-memory content calendar for one run."""

    clusters: List[KeywordCluster] = field(default_factory=list)
    calendar: List[CalendarWeek] = field(default_factory=list)
    total_articles: int = 0
    estimated_traffic_potential: int = 0


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


@dataclass
class ArticleMeta(_Serializable):
    title: str
    description: str
    keywords: List[str] = field(default_factory=list)


@dataclass
class InternalLink(_Serializable):
    anchor: str
    url: str


@dataclass
class GeneratedArticle(_Serializable):
    """Terminal artifact of a run, ready for review or publishing."""

    title: str
    content: str
    meta: ArticleMeta
    schema: Dict[str, Any] = field(default_factory=dict)
    internal_links: List[InternalLink] = field(default_factory=list)


@dataclass
class PublishResult(_Serializable):
    success: bool
    url: Optional[str] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Progress & run result
# ---------------------------------------------------------------------------


@dataclass
class AutopilotProgress(_Serializable):
    phase: AutopilotPhase
    progress: float
    message: str
    details: Optional[Dict[str, Any]] = None


ProgressCallback = Callable[[AutopilotProgress], None]


@dataclass
class AutopilotRunResult(_Serializable):
    """Every intermediate artifact of a full ``run()``."""

    discovery: DiscoveryResult
    clusters: List[KeywordCluster]
    plan: ContentPlan
    generated_article: GeneratedArticle
