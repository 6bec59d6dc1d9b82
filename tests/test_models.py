"""Tests for config validation and model serialization."""

import json
from datetime import datetime, timezone

import pytest

from autopilot.models import (
    AutopilotConfig,
    CalendarWeek,
    ContentPlan,
    ContentType,
    KeywordCluster,
    KeywordMetrics,
    PlannedTopic,
    Priority,
    WordPressCredentials,
)


class TestAutopilotConfig:

    @pytest.mark.unit
    def test_defaults(self, sample_config):
        assert sample_config.auto_publish is False
        assert sample_config.content_tone == "professional"
        assert sample_config.target_audience == "general audience"
        assert sample_config.primary_language == "en"
        assert sample_config.articles_per_week == 2
        assert sample_config.location == "United States"
        assert sample_config.wordpress is None

    @pytest.mark.unit
    def test_site_url_normalized(self):
        config = AutopilotConfig(site_url="  https://example.com/ ", organization_id="o", site_id="s")
        assert config.site_url == "https://example.com"

    @pytest.mark.unit
    @pytest.mark.parametrize("kwargs", [
        {"site_url": ""},
        {"site_url": "https://x.test", "content_tone": "sarcastic"},
        {"site_url": "https://x.test", "articles_per_week": 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            AutopilotConfig(organization_id="o", site_id="s", **kwargs)

    @pytest.mark.unit
    def test_immutable(self, sample_config):
        with pytest.raises(AttributeError):
            sample_config.auto_publish = True

    @pytest.mark.unit
    def test_from_camel_case_payload(self):
        config = AutopilotConfig.from_dict({
            "siteUrl": "https://example.com",
            "organizationId": "org_1",
            "siteId": "site_1",
            "autoPublish": True,
            "contentTone": "friendly",
            "articlesPerWeek": 3,
            "wordpress": {
                "siteUrl": "https://blog.example.com/",
                "username": "editor",
                "applicationPassword": "pw",
            },
        })
        assert config.auto_publish is True
        assert config.content_tone == "friendly"
        assert config.articles_per_week == 3
        assert config.wordpress == WordPressCredentials("https://blog.example.com", "editor", "pw")

    @pytest.mark.unit
    def test_from_snake_case(self):
        config = AutopilotConfig.from_dict({"site_url": "https://example.com", "organization_id": "o",
                                            "site_id": "s", "location": "Germany"})
        assert config.location == "Germany"
        assert config.wordpress is None


class TestKeywordCluster:

    @pytest.mark.unit
    def test_averages(self):
        cluster = KeywordCluster(
            name="c",
            keywords=[KeywordMetrics("a", volume=100, difficulty=20), KeywordMetrics("b", volume=300, difficulty=40)],
        )
        assert cluster.average_volume == 200
        assert cluster.average_difficulty == 30

    @pytest.mark.unit
    def test_empty_averages(self):
        cluster = KeywordCluster(name="c")
        assert cluster.average_volume == 0.0
        assert cluster.average_difficulty == 0.0


class TestSerialization:

    @pytest.mark.unit
    def test_plan_to_dict_is_json_safe(self):
        deadline = datetime(2026, 3, 1, tzinfo=timezone.utc)
        plan = ContentPlan(
            clusters=[KeywordCluster(name="c", priority=Priority.HIGH, suggested_content_type=ContentType.HOW_TO)],
            calendar=[CalendarWeek(1, [PlannedTopic("c", "T", "k", 1500, deadline)])],
            total_articles=1,
        )
        data = plan.to_dict()
        json.dumps(data)
        assert data["clusters"][0]["priority"] == "high"
        assert data["clusters"][0]["suggested_content_type"] == "how-to"
        assert data["calendar"][0]["topics"][0]["deadline"] == "2026-03-01T00:00:00+00:00"
