"""
Shared fixtures for the Autopilot test suite.

Provides sample configs, pages and plans plus mock HTTP sessions and mock
LLM/keyword clients, so that no test touches the network.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from autopilot.ai_client import ContentOutline, GeneratedContent, OutlineHeading
from autopilot.models import (
    AutopilotConfig,
    CalendarWeek,
    ContentPlan,
    DiscoveredPage,
    KeywordMetrics,
    PageType,
    PlannedTopic,
    WordPressCredentials,
)

FIXED_NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def wp_credentials():
    return WordPressCredentials(
        site_url="https://blog.example.com/",
        username="editor",
        application_password="abcd efgh ijkl mnop",
    )


@pytest.fixture
def sample_config():
    """Config without a CMS connection."""
    return AutopilotConfig(
        site_url="https://example.com",
        organization_id="org_1",
        site_id="site_1",
    )


@pytest.fixture
def wp_config(wp_credentials):
    return AutopilotConfig(
        site_url="https://example.com",
        organization_id="org_1",
        site_id="site_1",
        wordpress=wp_credentials,
    )


# ---------------------------------------------------------------------------
# Data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def sample_pages():
    return [
        DiscoveredPage("https://example.com/blog/sourdough", "Sourdough Starter Basics", PageType.POST),
        DiscoveredPage("https://example.com/blog/rye", "Baking Rye Bread at Home", PageType.POST),
        DiscoveredPage("https://example.com/about", "About the Bakery", PageType.PAGE),
    ]


@pytest.fixture
def sample_keywords():
    return [
        KeywordMetrics("sourdough starter", volume=5400, difficulty=32, cpc=1.2),
        KeywordMetrics("rye bread recipe", volume=2900, difficulty=28, cpc=0.8),
        KeywordMetrics("bread flour types", volume=80, difficulty=75, cpc=0.4),
    ]


@pytest.fixture
def make_plan():
    """Factory for a one-week plan with *n* topics."""

    def _make(n=2):
        topics = [
            PlannedTopic(
                cluster_id="Sourdough",
                title=f"Sourdough Guide {i + 1}",
                target_keyword=f"sourdough tip {i + 1}",
                estimated_words=1800,
                deadline=FIXED_NOW,
            )
            for i in range(n)
        ]
        return ContentPlan(
            clusters=[],
            calendar=[CalendarWeek(week=1, topics=topics)] if n else [],
            total_articles=n,
        )

    return _make


# ---------------------------------------------------------------------------
# HTTP mock fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_aiohttp_response():
    """Create a mock aiohttp response factory."""

    def _make(status=200, json_data=None, text="", headers=None):
        resp = AsyncMock()
        resp.status = status
        resp.json = AsyncMock(return_value=json_data if json_data is not None else {})
        resp.text = AsyncMock(return_value=text)
        resp.headers = headers or {"Content-Type": "application/json"}
        resp.__aenter__ = AsyncMock(return_value=resp)
        resp.__aexit__ = AsyncMock(return_value=False)
        return resp

    return _make


@pytest.fixture
def site_session(mock_aiohttp_response):
    """
    Factory for a mock session serving a fake website.

    *routes* maps URL -> ``(status, body)`` or an exception instance; any
    other URL raises ``aiohttp.ClientConnectionError``.
    """

    def _make(routes):
        session = AsyncMock()
        session.closed = False

        def _get(url, **kwargs):
            route = routes.get(url)
            if route is None:
                raise aiohttp.ClientConnectionError(f"no route to {url}")
            if isinstance(route, Exception):
                raise route
            status, body = route
            return mock_aiohttp_response(status, text=body, headers={"Content-Type": "text/html"})

        session.get = MagicMock(side_effect=_get)
        session.close = AsyncMock()
        return session

    return _make


@pytest.fixture
def request_session():
    """Factory: mock session whose ``request()`` / ``post()`` yield responses in order."""

    def _make(*responses):
        session = AsyncMock()
        contexts = []
        for resp in responses:
            ctx = AsyncMock()
            ctx.__aenter__ = AsyncMock(return_value=resp)
            ctx.__aexit__ = AsyncMock(return_value=False)
            contexts.append(ctx)
        session.request = MagicMock(side_effect=contexts)
        session.post = MagicMock(side_effect=contexts)
        session.close = AsyncMock()
        session.closed = False
        return session

    return _make


# ---------------------------------------------------------------------------
# Anthropic / collaborator mock fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_anthropic():
    """Mock AsyncAnthropic client; set ``reply(text)`` to change the answer."""
    client = MagicMock()
    response = MagicMock()
    response.content = [MagicMock(text="Generated content here")]
    response.usage = MagicMock(input_tokens=100, output_tokens=200)
    client.messages.create = AsyncMock(return_value=response)
    client.close = AsyncMock()

    def reply(*texts):
        responses = []
        for text in texts:
            r = MagicMock()
            r.content = [MagicMock(text=text)]
            responses.append(r)
        client.messages.create = AsyncMock(side_effect=responses)

    client.reply = reply
    return client


@pytest.fixture
def sample_outline():
    return ContentOutline(
        title="How to Feed a Sourdough Starter",
        meta_description="Feeding schedule, ratios and troubleshooting for a healthy starter.",
        headings=[OutlineHeading(2, "Feeding Ratios", ["1:1:1", "1:5:5"])],
        faqs=[{"question": "How often should I feed it?", "answer": "Daily at room temperature."}],
    )


@pytest.fixture
def fake_ai(sample_outline):
    """AIClient stand-in with canned answers for every prompt."""
    ai = MagicMock()
    ai.cluster_keywords = AsyncMock(return_value=[
        {"name": "Sourdough", "pillar_keyword": "sourdough starter",
         "keywords": ["sourdough starter"], "suggested_articles": 3},
        {"name": "Rye", "pillar_keyword": "rye bread recipe",
         "keywords": ["rye bread recipe", "bread flour types"], "suggested_articles": 2},
    ])
    ai.generate_article_ideas = AsyncMock(return_value=[
        {"title": "Sourdough Starter 101", "keyword": "sourdough starter",
         "intent": "informational", "difficulty": "easy", "estimated_traffic": 400},
        {"title": "Reviving a Dead Starter", "keyword": "revive sourdough starter",
         "intent": "informational", "difficulty": "easy", "estimated_traffic": 150},
    ])
    ai.generate_outline = AsyncMock(return_value=sample_outline)
    ai.generate_article = AsyncMock(return_value=GeneratedContent(
        title=sample_outline.title,
        meta_title=sample_outline.title,
        meta_description=sample_outline.meta_description,
        body="## Feeding Ratios\n\nMix equal parts starter, flour and water.",
        outline=sample_outline,
    ))
    ai.generate_meta = AsyncMock(return_value={
        "meta_title": "Sourdough Starter 101",
        "meta_description": "Everything you need to keep a starter alive.",
    })
    ai.close = AsyncMock()
    return ai


@pytest.fixture
def fake_keywords(sample_keywords):
    client = MagicMock()
    client.get_keyword_suggestions = AsyncMock(return_value=sample_keywords)
    client.close = AsyncMock()
    return client
