"""
Tests for site discovery: sitemap parsing and fallback, page crawling and
technology detection. All HTTP is served by a mock session.
"""

import asyncio

import aiohttp
import pytest

from autopilot.discovery import (
    DiscoveryError,
    classify_page,
    crawl_page,
    detect_technologies,
    detect_technologies_in_html,
    extract_lastmod,
    extract_sitemap_urls,
    extract_title,
    fetch_sitemap,
)
from autopilot.models import PageType

SITE = "https://example.com"

SITEMAP = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://example.com/</loc><lastmod>2025-11-01</lastmod></url>
  <url><loc>https://example.com/blog/sourdough</loc></url>
  <url><loc><![CDATA[https://example.com/shop/?a=1&amp;b=2]]></loc></url>
</urlset>"""


# ===================================================================
# Parsing
# ===================================================================

class TestSitemapParsing:

    @pytest.mark.unit
    def test_extracts_locations_in_order(self):
        urls = extract_sitemap_urls(SITEMAP)
        assert urls[:2] == ["https://example.com/", "https://example.com/blog/sourdough"]
        assert len(urls) == 3

    @pytest.mark.unit
    def test_unwraps_cdata_and_entities(self):
        assert extract_sitemap_urls(SITEMAP)[2] == "https://example.com/shop/?a=1&b=2"

    @pytest.mark.unit
    def test_empty_document(self):
        assert extract_sitemap_urls("") == []
        assert extract_sitemap_urls("<html>not a sitemap</html>") == []

    @pytest.mark.unit
    def test_lastmod_only_for_entries_that_have_one(self):
        assert extract_lastmod(SITEMAP) == {"https://example.com/": "2025-11-01"}


class TestClassifyPage:

    @pytest.mark.unit
    @pytest.mark.parametrize("url,expected", [
        ("https://example.com/about", PageType.PAGE),
        ("https://example.com/blog/sourdough", PageType.POST),
        ("https://example.com/post/42", PageType.POST),
        ("https://example.com/category/bread", PageType.CATEGORY),
        ("https://example.com/tag/rye", PageType.CATEGORY),
        ("https://example.com/shop/flour", PageType.PRODUCT),
    ])
    def test_url_conventions(self, url, expected):
        assert classify_page(url) == expected

    @pytest.mark.unit
    def test_later_rule_wins(self):
        assert classify_page("https://example.com/blog/category/news") == PageType.CATEGORY
        assert classify_page("https://example.com/blog/product/mixer") == PageType.PRODUCT


class TestExtractTitle:

    @pytest.mark.unit
    def test_title_is_unescaped_and_collapsed(self):
        doc = "<html><head><title>\n  Bread &amp; Butter\n  Recipes </title></head></html>"
        assert extract_title(doc, "fallback") == "Bread & Butter Recipes"

    @pytest.mark.unit
    def test_missing_title_uses_fallback(self):
        assert extract_title("<html><body>hi</body></html>", "https://x.test/a") == "https://x.test/a"
        assert extract_title("<title>   </title>", "fb") == "fb"


class TestDetectTechnologiesInHtml:

    @pytest.mark.unit
    def test_wordpress_and_next(self):
        doc = '<link href="/wp-content/style.css"><script id="__NEXT_DATA__"></script>'
        assert detect_technologies_in_html(doc) == ["WordPress", "Next.js"]

    @pytest.mark.unit
    def test_nothing_detected(self):
        assert detect_technologies_in_html("<html></html>") == []


# ===================================================================
# Fetching
# ===================================================================

class TestFetchSitemap:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_primary_sitemap(self, site_session):
        session = site_session({f"{SITE}/sitemap.xml": (200, SITEMAP)})
        urls = await fetch_sitemap(session, SITE)
        assert len(urls) == 3
        assert session.get.call_count == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_nothing_reachable_returns_empty(self, site_session):
        session = site_session({})
        assert await fetch_sitemap(session, SITE) == []
        assert session.get.call_count == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeouts_return_empty(self, site_session):
        session = site_session({
            f"{SITE}/sitemap.xml": asyncio.TimeoutError(),
            f"{SITE}/sitemap_index.xml": asyncio.TimeoutError(),
        })
        assert await fetch_sitemap(session, SITE) == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_falls_back_to_alternate_on_error_status(self, site_session):
        index = "<sitemapindex><sitemap><loc>https://example.com/post-sitemap.xml</loc></sitemap></sitemapindex>"
        session = site_session({
            f"{SITE}/sitemap.xml": (404, "Not Found"),
            f"{SITE}/sitemap_index.xml": (200, index),
        })
        assert await fetch_sitemap(session, SITE) == ["https://example.com/post-sitemap.xml"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_alternate_without_urls_is_skipped(self, site_session):
        session = site_session({
            f"{SITE}/sitemap_index.xml": (200, "<sitemapindex></sitemapindex>"),
            f"{SITE}/sitemap-posts.xml": (200, SITEMAP),
        })
        assert len(await fetch_sitemap(session, SITE)) == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_primary_does_not_trigger_fallback(self, site_session):
        session = site_session({
            f"{SITE}/sitemap.xml": (200, "<urlset></urlset>"),
            f"{SITE}/sitemap-posts.xml": (200, SITEMAP),
        })
        assert await fetch_sitemap(session, SITE) == []
        assert session.get.call_count == 1


class TestCrawlPage:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_crawl_builds_page(self, site_session):
        url = f"{SITE}/blog/sourdough"
        session = site_session({url: (200, "<title>Sourdough Basics</title>")})
        page = await crawl_page(session, url, last_modified="2025-11-01")
        assert page.title == "Sourdough Basics"
        assert page.type == PageType.POST
        assert page.last_modified == "2025-11-01"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_error_status_raises(self, site_session):
        url = f"{SITE}/gone"
        session = site_session({url: (410, "Gone")})
        with pytest.raises(DiscoveryError) as exc_info:
            await crawl_page(session, url)
        assert exc_info.value.status_code == 410
        assert exc_info.value.url == url

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_network_error_propagates(self, site_session):
        with pytest.raises(aiohttp.ClientError):
            await crawl_page(site_session({}), f"{SITE}/x")


class TestDetectTechnologies:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_detects_from_home_page(self, site_session):
        session = site_session({SITE: (200, '<script src="https://cdn.shopify.com/s.js"></script>')})
        assert await detect_technologies(session, SITE) == ["Shopify"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unreachable_home_page(self, site_session):
        assert await detect_technologies(site_session({}), SITE) == []
