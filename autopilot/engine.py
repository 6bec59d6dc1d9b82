"""
Autopilot engine: turns a site URL into a keyword strategy and a draft
article, optionally publishing it.

Phases run strictly in sequence (discovery, analysis, strategy, generation,
publishing) with every network call awaited one at a time. Each phase
reports coarse progress through an optional synchronous callback.

Usage::

    async with AutopilotEngine(config, on_progress=print) as engine:
        result = await engine.run()
        await engine.publish(result.generated_article)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from autopilot import analysis, discovery, settings, strategy
from autopilot.ai_client import AIClient
from autopilot.content import build_article_schema, select_topic
from autopilot.keyword_client import KeywordDataClient, KeywordDataError
from autopilot.models import (
    ArticleMeta,
    AutopilotConfig,
    AutopilotPhase,
    AutopilotProgress,
    AutopilotRunResult,
    ContentPlan,
    DiscoveredPage,
    DiscoveryResult,
    GeneratedArticle,
    KeywordCluster,
    ProgressCallback,
    PublishResult,
)
from autopilot.publisher import publish_article
from autopilot.wordpress_client import WordPressClient

logger = logging.getLogger("autopilot.engine")

DISCOVERY_SITEMAP_PROGRESS = 30
DISCOVERY_CRAWL_SPAN = 50


class AutopilotEngine:
    """
    Runs the autopilot pipeline for one site.

    Parameters
    ----------
    config : AutopilotConfig
        Per-run configuration.
    on_progress : callable, optional
        Called synchronously with an ``AutopilotProgress`` at each phase
        boundary. Exceptions it raises propagate out of the phase.
    ai, keywords, wordpress : optional
        Collaborator clients. Default to real clients; a WordPress client is
        only built when ``config.wordpress`` is set.
    session : aiohttp.ClientSession, optional
        Session used for site crawling. Never closed by the engine when
        supplied by the caller.
    """

    def __init__(
        self,
        config: AutopilotConfig,
        on_progress: Optional[ProgressCallback] = None,
        *,
        ai: Optional[AIClient] = None,
        keywords: Optional[KeywordDataClient] = None,
        wordpress: Optional[WordPressClient] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config
        self.on_progress = on_progress

        self._owned: List[Any] = []

        if ai is None:
            ai = AIClient()
            self._owned.append(ai)
        self.ai = ai

        if keywords is None:
            keywords = KeywordDataClient()
            self._owned.append(keywords)
        self.keywords = keywords

        if wordpress is None and config.wordpress is not None:
            wordpress = WordPressClient(config.wordpress)
            self._owned.append(wordpress)
        self.wordpress = wordpress

        self._session = session
        self._owns_session = session is None

    # -- Resources ----------------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": settings.USER_AGENT},
                timeout=aiohttp.ClientTimeout(total=settings.HTTP_TIMEOUT),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the sessions and clients this engine created."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        for client in self._owned:
            await client.close()
        self._owned = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # -- Progress -----------------------------------------------------------

    def report_progress(
        self,
        phase: AutopilotPhase,
        progress: float,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        logger.debug("[%s %3.0f%%] %s", phase.value, progress, message)
        if self.on_progress is not None:
            self.on_progress(AutopilotProgress(phase, progress, message, details))

    # -----------------------------------------------------------------------
    # Phase 1: Discovery
    # -----------------------------------------------------------------------

    async def discover(self) -> DiscoveryResult:
        """Read the sitemap, sample up to 50 pages and detect the CMS."""
        phase = AutopilotPhase.DISCOVERY
        site_url = self.config.site_url
        logger.info("Discovery started for %s", site_url)
        self.report_progress(phase, 0, "Fetching sitemap...")

        session = await self._get_session()
        xml = await discovery.fetch_sitemap_document(session, site_url)
        sitemap_urls = discovery.extract_sitemap_urls(xml)
        lastmod = discovery.extract_lastmod(xml)
        self.report_progress(
            phase, DISCOVERY_SITEMAP_PROGRESS, f"Found {len(sitemap_urls)} URLs in sitemap",
        )

        pages: List[DiscoveredPage] = []
        samples = sitemap_urls[:discovery.MAX_PAGES_TO_SAMPLE]
        for i, url in enumerate(samples):
            try:
                page = await discovery.crawl_page(session, url, lastmod.get(url))
            except discovery.DiscoveryError as exc:
                logger.debug("Skipping %s: %s", url, exc)
                continue
            except discovery.FETCH_ERRORS as exc:
                logger.debug("Skipping %s: %s: %s", url, type(exc).__name__, exc)
                continue
            pages.append(page)
            progress = DISCOVERY_SITEMAP_PROGRESS + (i / len(samples)) * DISCOVERY_CRAWL_SPAN
            self.report_progress(phase, progress, f"Crawled {i + 1}/{len(samples)} pages")

        technologies = await discovery.detect_technologies(session, site_url)

        self.report_progress(
            phase, 100, "Discovery complete",
            {"pages_found": len(pages), "sitemap_urls": len(sitemap_urls)},
        )
        logger.info(
            "Discovery complete: %d/%d pages crawled, technologies=%s",
            len(pages), len(sitemap_urls), technologies or "none",
        )
        return DiscoveryResult(
            pages=pages,
            sitemap_urls=sitemap_urls,
            technologies=technologies,
            estimated_pages=len(sitemap_urls),
        )

    # -----------------------------------------------------------------------
    # Phase 2: Analysis
    # -----------------------------------------------------------------------

    async def analyze(self, discovery_result: DiscoveryResult) -> List[KeywordCluster]:
        """Seed keywords -> provider suggestions -> LLM clusters -> priorities."""
        phase = AutopilotPhase.ANALYSIS
        self.report_progress(phase, 0, "Analyzing keywords...")

        seeds = analysis.extract_seed_keywords(discovery_result.pages)
        self.report_progress(phase, 20, f"Extracted {len(seeds)} seed keywords")

        keyword_data = []
        if seeds:
            try:
                keyword_data = await self.keywords.get_keyword_suggestions(
                    analysis.build_seed_query(seeds),
                    self.config.location,
                    analysis.SUGGESTION_LIMIT,
                )
            except KeywordDataError as exc:
                logger.warning("Keyword lookup failed, continuing without data: %s", exc)
        self.report_progress(phase, 50, "Fetched keyword data")

        raw_clusters = []
        if keyword_data:
            raw_clusters = await self.ai.cluster_keywords([k.keyword for k in keyword_data])
        else:
            logger.warning("No keyword data for %s; skipping clustering", self.config.site_url)
        clusters = analysis.build_clusters(raw_clusters, keyword_data)
        self.report_progress(phase, 80, f"Created {len(clusters)} keyword clusters")

        prioritized = analysis.prioritize_clusters(clusters)
        self.report_progress(phase, 100, "Analysis complete")
        logger.info(
            "Analysis complete: %d seeds, %d keywords, %d clusters",
            len(seeds), len(keyword_data), len(prioritized),
        )
        return prioritized

    # -----------------------------------------------------------------------
    # Phase 3: Strategy
    # -----------------------------------------------------------------------

    async def create_strategy(self, clusters: List[KeywordCluster]) -> ContentPlan:
        phase = AutopilotPhase.STRATEGY
        self.report_progress(phase, 0, "Creating content strategy...")
        self.report_progress(phase, 30, "Generating content calendar...")

        ideas = await self.ai.generate_article_ideas(
            strategy.ideas_topic(clusters),
            [],
            strategy.ideas_requested(self.config.articles_per_week),
        )
        plan = strategy.build_plan_from_ideas(clusters, ideas, self.config.articles_per_week)
        if plan is None:
            logger.warning("No usable article ideas; using fallback plan")
            plan = strategy.create_fallback_plan(clusters)

        self.report_progress(
            phase, 100, "Strategy complete",
            {
                "total_articles": plan.total_articles,
                "traffic_potential": plan.estimated_traffic_potential,
            },
        )
        logger.info(
            "Strategy complete: %d articles over %d weeks",
            plan.total_articles, len(plan.calendar),
        )
        return plan

    # -----------------------------------------------------------------------
    # Phase 4: Generation
    # -----------------------------------------------------------------------

    async def generate_content(self, plan: ContentPlan, article_index: int = 0) -> GeneratedArticle:
        """
        Write the article for topic *article_index* of the plan's first week.

        Raises
        ------
        ArticleNotFoundError
            If the first week has no topic at that index.
        """
        topic = select_topic(plan, article_index)
        phase = AutopilotPhase.GENERATION
        self.report_progress(phase, 0, f"Generating: {topic.title}")

        outline = await self.ai.generate_outline(
            topic.target_keyword,
            [{"title": topic.title, "description": f"Article about {topic.target_keyword}"}],
            topic.estimated_words,
        )
        self.report_progress(phase, 25, "Outline complete")

        generated = await self.ai.generate_article(
            topic.target_keyword, outline, self.config.content_tone,
        )
        body = generated.body
        self.report_progress(phase, 60, "Content generated")

        meta_tags = await self.ai.generate_meta(body, topic.target_keyword)
        meta = ArticleMeta(
            title=meta_tags["meta_title"],
            description=meta_tags["meta_description"],
            keywords=[topic.target_keyword],
        )
        self.report_progress(phase, 80, "Meta tags generated")

        article = GeneratedArticle(
            title=topic.title,
            content=body,
            meta=meta,
            schema=build_article_schema(topic.title, meta),
            internal_links=[],
        )
        self.report_progress(phase, 100, "Content ready for review")
        logger.info("Generated '%s' (%d words)", topic.title[:60], generated.word_count)
        return article

    # -----------------------------------------------------------------------
    # Phase 5: Publishing
    # -----------------------------------------------------------------------

    async def publish(self, article: GeneratedArticle) -> PublishResult:
        """Publish *article* to WordPress as draft, or live if auto-publish is on."""
        if self.wordpress is None:
            return await publish_article(None, article, self.config.auto_publish)

        phase = AutopilotPhase.PUBLISHING
        self.report_progress(phase, 0, "Publishing to WordPress...")
        result = await publish_article(self.wordpress, article, self.config.auto_publish)
        if result.success:
            self.report_progress(phase, 100, "Published successfully", {"url": result.url})
        return result

    # -----------------------------------------------------------------------
    # Full cycle
    # -----------------------------------------------------------------------

    async def run(self) -> AutopilotRunResult:
        """Discovery, analysis, strategy, then the first planned article."""
        discovery_result = await self.discover()
        clusters = await self.analyze(discovery_result)
        plan = await self.create_strategy(clusters)
        article = await self.generate_content(plan, 0)
        return AutopilotRunResult(
            discovery=discovery_result,
            clusters=clusters,
            plan=plan,
            generated_article=article,
        )


async def start_autopilot(
    site_url: str,
    organization_id: str,
    site_id: str,
    options: Optional[Dict[str, Any]] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> AutopilotRunResult:
    """
    Run a full cycle with default preferences.

    *options* overrides the defaults and accepts the same keys as
    ``AutopilotConfig.from_dict``.
    """
    # Unset keys fall back to the AutopilotConfig defaults
    data: Dict[str, Any] = dict(options or {})
    for camel in ("siteUrl", "organizationId", "siteId"):
        data.pop(camel, None)
    data.update({"site_url": site_url, "organization_id": organization_id, "site_id": site_id})

    config = AutopilotConfig.from_dict(data)
    async with AutopilotEngine(config, on_progress) as engine:
        return await engine.run()
