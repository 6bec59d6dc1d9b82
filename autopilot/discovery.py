"""
Site discovery: sitemap lookup, page sampling and CMS detection.

Parsing is deliberately regex-based (``<loc>``, ``<lastmod>``, ``<title>``);
sitemaps and titles are simple enough that a full XML/HTML parser buys
nothing here. Fetch failures never raise out of ``fetch_sitemap`` or
``detect_technologies``; ``crawl_page`` raises and the caller decides.
"""

from __future__ import annotations

import asyncio
import html
import logging
import re
from typing import Dict, List, Optional, Tuple

import aiohttp

from autopilot.models import DiscoveredPage, PageType

logger = logging.getLogger("autopilot.discovery")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PRIMARY_SITEMAP_PATH = "/sitemap.xml"
ALTERNATE_SITEMAP_PATHS = (
    "/sitemap_index.xml",
    "/sitemap-pages.xml",
    "/sitemap-posts.xml",
)

MAX_PAGES_TO_SAMPLE = 50

# URL substring -> page type. Evaluated in order, later matches win.
PAGE_TYPE_RULES: Tuple[Tuple[Tuple[str, ...], PageType], ...] = (
    (("/blog/", "/post/"), PageType.POST),
    (("/category/", "/tag/"), PageType.CATEGORY),
    (("/product/", "/shop/"), PageType.PRODUCT),
)

# Technology name -> lowercase markers searched in the home page HTML
TECHNOLOGY_MARKERS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("WordPress", ("wp-content", "wordpress")),
    ("Shopify", ("shopify", "cdn.shopify.com")),
    ("Webflow", ("webflow",)),
    ("Next.js", ("__next_data__",)),
)

FETCH_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError)

_LOC_RE = re.compile(r"<loc>(.*?)</loc>", re.IGNORECASE | re.DOTALL)
_LASTMOD_RE = re.compile(r"<lastmod>(.*?)</lastmod>", re.IGNORECASE | re.DOTALL)
_ENTRY_RE = re.compile(r"<(url|sitemap)>(.*?)</\1>", re.IGNORECASE | re.DOTALL)
_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_CDATA_RE = re.compile(r"^<!\[CDATA\[(.*)\]\]>$", re.DOTALL)


class DiscoveryError(Exception):
    """Raised when a crawled page cannot be used."""

    def __init__(self, message: str, url: str = "", status_code: int = 0):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _clean_xml_text(raw: str) -> str:
    text = raw.strip()
    cdata = _CDATA_RE.match(text)
    if cdata:
        text = cdata.group(1).strip()
    return html.unescape(text)


def extract_sitemap_urls(xml: str) -> List[str]:
    """Return every ``<loc>`` value in *xml*, in document order."""
    urls = []
    for raw in _LOC_RE.findall(xml or ""):
        url = _clean_xml_text(raw)
        if url:
            urls.append(url)
    return urls


def extract_lastmod(xml: str) -> Dict[str, str]:
    """Map each ``<url>``/``<sitemap>`` entry's location to its ``<lastmod>``."""
    result: Dict[str, str] = {}
    for _, block in _ENTRY_RE.findall(xml or ""):
        loc = _LOC_RE.search(block)
        mod = _LASTMOD_RE.search(block)
        if loc and mod:
            result[_clean_xml_text(loc.group(1))] = _clean_xml_text(mod.group(1))
    return result


def classify_page(url: str) -> PageType:
    """Guess the page type from URL path conventions."""
    page_type = PageType.PAGE
    for needles, candidate in PAGE_TYPE_RULES:
        if any(needle in url for needle in needles):
            page_type = candidate
    return page_type


def extract_title(document: str, fallback: str) -> str:
    """Return the ``<title>`` text of *document*, or *fallback* if there is none."""
    match = _TITLE_RE.search(document or "")
    if not match:
        return fallback
    title = " ".join(html.unescape(match.group(1)).split())
    return title or fallback


def detect_technologies_in_html(document: str) -> List[str]:
    haystack = (document or "").lower()
    return [
        name
        for name, markers in TECHNOLOGY_MARKERS
        if any(marker in haystack for marker in markers)
    ]


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------


async def fetch_text(session: aiohttp.ClientSession, url: str) -> Tuple[int, str]:
    """GET *url* and return ``(status, body_text)``."""
    logger.debug("GET %s", url)
    async with session.get(url) as resp:
        body = await resp.text()
        return resp.status, body


def _is_success(status: int) -> bool:
    return 200 <= status < 300


async def fetch_sitemap_document(session: aiohttp.ClientSession, site_url: str) -> str:
    """
    Return the raw XML of the site's sitemap, or ``""`` if none is reachable.

    ``/sitemap.xml`` is tried first. Only when that request fails (network
    error or non-2xx status) are the alternate locations tried, in order;
    an alternate is accepted only if it lists at least one URL.
    """
    base = site_url.rstrip("/")
    primary = f"{base}{PRIMARY_SITEMAP_PATH}"

    try:
        status, xml = await fetch_text(session, primary)
    except FETCH_ERRORS as exc:
        logger.debug("Sitemap %s unreachable: %s", primary, exc)
    else:
        if _is_success(status):
            return xml
        logger.debug("Sitemap %s returned HTTP %d", primary, status)

    for path in ALTERNATE_SITEMAP_PATHS:
        url = f"{base}{path}"
        try:
            status, xml = await fetch_text(session, url)
        except FETCH_ERRORS as exc:
            logger.debug("Sitemap %s unreachable: %s", url, exc)
            continue
        if _is_success(status) and extract_sitemap_urls(xml):
            logger.info("Using alternate sitemap %s", url)
            return xml

    logger.warning("No sitemap found for %s", base)
    return ""


async def fetch_sitemap(session: aiohttp.ClientSession, site_url: str) -> List[str]:
    """Return the URLs listed in the site's sitemap; ``[]`` if none is reachable."""
    return extract_sitemap_urls(await fetch_sitemap_document(session, site_url))


async def crawl_page(
    session: aiohttp.ClientSession,
    url: str,
    last_modified: Optional[str] = None,
) -> DiscoveredPage:
    """
    Fetch one page and describe it.

    Raises
    ------
    DiscoveryError
        On a non-2xx response.
    aiohttp.ClientError, asyncio.TimeoutError
        On network failure.
    """
    status, document = await fetch_text(session, url)
    if not _is_success(status):
        raise DiscoveryError(f"HTTP {status} for {url}", url=url, status_code=status)

    return DiscoveredPage(
        url=url,
        title=extract_title(document, fallback=url),
        type=classify_page(url),
        last_modified=last_modified,
    )


async def detect_technologies(session: aiohttp.ClientSession, site_url: str) -> List[str]:
    """Detect the site's CMS/framework from its home page; ``[]`` on failure."""
    try:
        _, document = await fetch_text(session, site_url)
    except FETCH_ERRORS as exc:
        logger.debug("Technology detection failed for %s: %s", site_url, exc)
        return []
    return detect_technologies_in_html(document)
