"""
DataForSEO keyword-data client.

Only the keyword suggestion endpoint is used: seed keywords in, related
keywords with volume, difficulty, CPC and competition out.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import aiohttp

from autopilot import settings
from autopilot.models import KeywordMetrics

logger = logging.getLogger("autopilot.keyword_client")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SUGGESTIONS_ENDPOINT = "/v3/keywords_data/google_ads/keywords_for_keywords/live"
TASK_OK = 20000
DEFAULT_LOCATION_CODE = 2840
MAX_SEEDS_PER_TASK = 20

LOCATION_CODES: Dict[str, int] = {
    "United States": 2840,
    "United Kingdom": 2826,
    "Canada": 2124,
    "Australia": 2036,
    "Germany": 2276,
    "France": 2250,
    "India": 2356,
}


class KeywordDataError(Exception):
    """Raised when the keyword provider cannot be queried."""

    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)


def location_code(location: str) -> int:
    """DataForSEO location code for a country name; unknown names map to the US."""
    return LOCATION_CODES.get(location, DEFAULT_LOCATION_CODE)


def parse_keyword_item(item: Dict[str, Any]) -> KeywordMetrics:
    keyword_info = item.get("keyword_info") or {}
    properties = item.get("keyword_properties") or {}
    return KeywordMetrics(
        keyword=str(item.get("keyword", "")),
        volume=int(item.get("search_volume") or keyword_info.get("search_volume") or 0),
        difficulty=float(properties.get("keyword_difficulty") or 0),
        cpc=float(item.get("cpc") or 0),
        competition=float(item.get("competition") or 0),
    )


class KeywordDataClient:
    """
    Async DataForSEO client.

    Parameters
    ----------
    login, password : str, optional
        API credentials. Default to ``DATAFORSEO_LOGIN`` / ``DATAFORSEO_PASSWORD``.
    base_url : str, optional
        API root. Defaults to ``DATAFORSEO_BASE_URL``.
    timeout : int, optional
        Request timeout in seconds.
    """

    def __init__(
        self,
        login: Optional[str] = None,
        password: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> None:
        self.login = login if login is not None else settings.DATAFORSEO_LOGIN
        self.password = password if password is not None else settings.DATAFORSEO_PASSWORD
        self.base_url = (base_url or settings.DATAFORSEO_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.login and self.password)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                auth=aiohttp.BasicAuth(self.login or "", self.password or ""),
                headers={"User-Agent": settings.USER_AGENT, "Content-Type": "application/json"},
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _post(self, endpoint: str, payload: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not self.is_configured:
            raise KeywordDataError(
                "DataForSEO credentials are not set. "
                "Set DATAFORSEO_LOGIN and DATAFORSEO_PASSWORD."
            )

        session = await self._get_session()
        url = f"{self.base_url}{endpoint}"
        logger.debug("API POST %s", url)
        try:
            async with session.post(url, json=payload) as resp:
                status = resp.status
                try:
                    body = await resp.json(content_type=None)
                except (json.JSONDecodeError, ValueError):
                    body = await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise KeywordDataError(f"Network error calling DataForSEO: {exc}") from exc

        if status >= 400:
            raise KeywordDataError(
                f"DataForSEO API error: HTTP {status}",
                status_code=status,
                response_body=str(body),
            )
        if not isinstance(body, dict):
            raise KeywordDataError(
                "DataForSEO returned a non-JSON body", status_code=status, response_body=str(body),
            )
        return body

    async def get_keyword_suggestions(
        self,
        seed_keywords: Union[str, Sequence[str]],
        location: str = "United States",
        limit: int = 100,
    ) -> List[KeywordMetrics]:
        """
        Related keywords with metrics for *seed_keywords*.

        A comma-separated string is split into individual seeds. Returns
        ``[]`` when the provider reports a failed task or no results.

        Raises
        ------
        KeywordDataError
            On missing credentials, HTTP or network errors.
        """
        if isinstance(seed_keywords, str):
            seeds = [s.strip() for s in seed_keywords.split(",") if s.strip()]
        else:
            seeds = [s for s in seed_keywords if s]
        if not seeds:
            return []

        payload = [{
            "keywords": seeds[:MAX_SEEDS_PER_TASK],
            "location_code": location_code(location),
            "language_code": "en",
            "include_seed_keyword": True,
            "limit": limit,
        }]
        response = await self._post(SUGGESTIONS_ENDPOINT, payload)

        tasks = response.get("tasks") or []
        task = tasks[0] if tasks else None
        if not task or task.get("status_code") != TASK_OK:
            logger.warning(
                "DataForSEO task failed: %s", task.get("status_message") if task else "no task",
            )
            return []

        results = task.get("result") or []
        keywords = [parse_keyword_item(item) for item in results[:limit] if isinstance(item, dict)]
        logger.info("Fetched %d keyword suggestions for %d seeds", len(keywords), len(seeds))
        return keywords
