"""
WordPress REST API client used by the publisher.

Authenticates with an application password (HTTP Basic). Only the calls
the pipeline needs are exposed: creating a post and a connection check.

Idempotent GET requests are retried on transient failures with exponential
backoff. POST requests are sent exactly once: a timed-out create may still
have succeeded server-side, and resending it would publish a duplicate.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from autopilot import settings
from autopilot.models import WordPressCredentials

logger = logging.getLogger("autopilot.wordpress_client")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}
RETRYABLE_METHODS = {"GET"}

API_PREFIX = "/wp-json/wp/v2"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class WordPressError(Exception):
    """Base exception for WordPress API errors."""

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


class AuthenticationError(WordPressError):
    """Raised on 401/403 responses."""


class NotFoundError(WordPressError):
    """Raised on 404 responses."""


class RateLimitError(WordPressError):
    """Raised on 429 responses that are not (or no longer) retried."""


def basic_auth_header(username: str, application_password: str) -> str:
    # WordPress displays application passwords in space-separated groups
    token = f"{username}:{application_password.replace(' ', '')}"
    return "Basic " + base64.b64encode(token.encode("utf-8")).decode("ascii")


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class WordPressClient:
    """
    Async WordPress REST API client for a single site.

    Parameters
    ----------
    credentials : WordPressCredentials
        Site URL, username and application password.
    timeout : int, optional
        Request timeout in seconds. Defaults to ``AUTOPILOT_HTTP_TIMEOUT``.

    Examples
    --------
    >>> async with WordPressClient(creds) as wp:
    ...     post = await wp.create_post("Title", "<p>Body</p>")
    """

    def __init__(self, credentials: WordPressCredentials, timeout: Optional[int] = None):
        self.credentials = credentials
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def api_url(self) -> str:
        return f"{self.credentials.site_url}{API_PREFIX}"

    # -- Session management -------------------------------------------------

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            headers = {
                "User-Agent": settings.USER_AGENT,
                "Accept": "application/json",
                "Authorization": basic_auth_header(
                    self.credentials.username, self.credentials.application_password
                ),
            }
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # -- Core HTTP ----------------------------------------------------------

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Tuple[int, Any]:
        """
        Make an HTTP request, retrying transient failures for GET only.

        Returns
        -------
        tuple of (status_code, response_json_or_text)

        Raises
        ------
        AuthenticationError
            On 401 or 403 responses.
        NotFoundError
            On 404 responses.
        RateLimitError
            On a 429 that is not retried.
        WordPressError
            On other non-2xx responses and network failures.
        """
        method = method.upper()
        max_retries = MAX_RETRIES if method in RETRYABLE_METHODS else 0
        session = await self._get_session()

        for attempt in range(max_retries + 1):
            logger.debug(
                "API %s %s (attempt %d/%d)", method, url, attempt + 1, max_retries + 1,
            )
            kwargs: Dict[str, Any] = {}
            if json_data is not None:
                kwargs["json"] = json_data
            if params is not None:
                kwargs["params"] = {k: v for k, v in params.items() if v is not None}

            try:
                async with session.request(method, url, **kwargs) as resp:
                    status = resp.status
                    try:
                        body = await resp.json(content_type=None)
                    except (json.JSONDecodeError, ValueError):
                        body = await resp.text(errors="replace")

                    if status in (401, 403):
                        raise AuthenticationError(
                            f"Authentication failed for {self.credentials.site_url}: HTTP {status}",
                            status_code=status,
                            response_body=str(body),
                        )
                    if status == 404:
                        raise NotFoundError(
                            f"Resource not found: {url}",
                            status_code=404,
                            response_body=str(body),
                        )

                    if status in RETRY_STATUS_CODES and attempt < max_retries:
                        delay = RETRY_BASE_DELAY * (2 ** attempt)
                        retry_after = resp.headers.get("Retry-After")
                        if retry_after:
                            try:
                                delay = max(delay, float(retry_after))
                            except ValueError:
                                pass
                        logger.warning(
                            "Retryable error %d from %s, retrying in %.1fs", status, url, delay,
                        )
                        await asyncio.sleep(delay)
                        continue

                    if status == 429:
                        raise RateLimitError(
                            f"Rate limited by {self.credentials.site_url}",
                            status_code=429,
                            response_body=str(body),
                        )
                    if status >= 400:
                        error_msg = body.get("message", str(body)) if isinstance(body, dict) else body
                        raise WordPressError(
                            f"HTTP {status} from {self.credentials.site_url}: {error_msg}",
                            status_code=status,
                            response_body=str(body),
                        )
                    return status, body

            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                if attempt < max_retries:
                    delay = RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Network error on %s (%s), retrying in %.1fs: %s",
                        url, type(exc).__name__, delay, exc,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise WordPressError(
                    f"Network error for {self.credentials.site_url}: {exc}"
                ) from exc

        raise WordPressError(f"Request to {url} failed after {max_retries} retries")

    # -----------------------------------------------------------------------
    # Posts
    # -----------------------------------------------------------------------

    async def create_post(
        self,
        title: str,
        content: str,
        status: str = "draft",
        meta: Optional[Dict[str, Any]] = None,
        categories: Optional[List[int]] = None,
        tags: Optional[List[int]] = None,
        slug: Optional[str] = None,
        excerpt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a new WordPress post.

        Parameters
        ----------
        title : str
            Post title.
        content : str
            Post content (HTML or markdown, stored as-is).
        status : str
            One of: draft, publish, future, pending, private.
        meta : dict, optional
            Post meta fields, e.g. Yoast title and description.

        Returns
        -------
        dict
            Post object from the API; ``link`` is the public URL.
        """
        payload: Dict[str, Any] = {"title": title, "content": content, "status": status}
        if meta:
            payload["meta"] = meta
        if categories:
            payload["categories"] = categories
        if tags:
            payload["tags"] = tags
        if slug:
            payload["slug"] = slug
        if excerpt:
            payload["excerpt"] = excerpt

        _, result = await self._request("POST", f"{self.api_url}/posts", json_data=payload)
        if not isinstance(result, dict):
            raise WordPressError(f"Unexpected response creating post: {str(result)[:200]}")
        logger.info(
            "Created post %s on %s: %s (status=%s)",
            result.get("id"), self.credentials.site_url, title[:60], status,
        )
        return result

    async def test_connection(self) -> Dict[str, Any]:
        """
        Check that the site's REST API answers.

        Returns ``{"success": True, "site_name": ...}`` or
        ``{"success": False, "error": ...}``; never raises on API errors.
        """
        try:
            _, info = await self._request("GET", f"{self.credentials.site_url}/wp-json")
        except WordPressError as exc:
            logger.warning("Connection test failed for %s: %s", self.credentials.site_url, exc)
            return {"success": False, "error": str(exc)}
        name = info.get("name") if isinstance(info, dict) else None
        return {"success": True, "site_name": name}
