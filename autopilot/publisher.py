"""Publishing a generated article to the connected CMS."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from autopilot.models import GeneratedArticle, PublishResult
from autopilot.wordpress_client import WordPressClient, WordPressError

logger = logging.getLogger("autopilot.publisher")

NO_CMS_ERROR = "No CMS connected"

YOAST_TITLE_KEY = "yoast_wpseo_title"
YOAST_DESCRIPTION_KEY = "yoast_wpseo_metadesc"


def build_post_payload(article: GeneratedArticle, auto_publish: bool) -> Dict[str, Any]:
    return {
        "title": article.title,
        "content": article.content,
        "status": "publish" if auto_publish else "draft",
        "meta": {
            YOAST_TITLE_KEY: article.meta.title,
            YOAST_DESCRIPTION_KEY: article.meta.description,
        },
    }


async def publish_article(
    wordpress: Optional[WordPressClient],
    article: GeneratedArticle,
    auto_publish: bool,
) -> PublishResult:
    """
    Create the WordPress post for *article*.

    Failures are reported in the returned ``PublishResult`` instead of
    raised. The create call is made once; a failed publish is not retried.
    """
    if wordpress is None:
        return PublishResult(success=False, error=NO_CMS_ERROR)

    payload = build_post_payload(article, auto_publish)
    try:
        post = await wordpress.create_post(**payload)
    except (WordPressError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
        logger.error("Publishing '%s' failed: %s", article.title[:60], exc)
        return PublishResult(success=False, error=str(exc))

    url = post.get("link")
    logger.info("Published '%s' as %s: %s", article.title[:60], payload["status"], url)
    return PublishResult(success=True, url=url)
