"""
LLM wrapper for the Autopilot pipeline.

Thin layer over the Anthropic Python SDK exposing the five prompts the
pipeline needs: keyword clustering, article ideation, outlining, article
writing and meta tags. Quick analytical prompts go to the fast model,
long-form prompts to the writer model.

JSON answers are parsed tolerantly (code fences, preamble text). When an
answer cannot be parsed each method degrades to a deterministic value
instead of raising; only transport/API failures raise ``AIClientError``.
"""

from __future__ import annotations

import json
import logging
import math
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import anthropic

from autopilot import settings

logger = logging.getLogger("autopilot.ai_client")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

META_TITLE_MAX_LENGTH = 60
META_DESCRIPTION_MAX_LENGTH = 155
READING_SPEED_WPM = 200
MAX_REFERENCE_RESULTS = 5
META_CONTENT_SAMPLE = 1000

SYSTEM_JSON_SEO = "You are an SEO expert that returns only valid JSON."
SYSTEM_STRATEGIST = "You are an SEO content strategist. Return only valid JSON."
SYSTEM_OUTLINER = "You are an expert SEO content strategist. Return only valid JSON."
SYSTEM_WRITER = (
    "You are an expert content writer specializing in SEO-optimized articles. "
    "Write comprehensive, engaging content."
)


class AIClientError(Exception):
    """Raised when the LLM provider cannot be reached or rejects a request."""


# ---------------------------------------------------------------------------
# Data Classes
# ---------------------------------------------------------------------------


@dataclass
class OutlineHeading:
    level: int
    text: str
    points: List[str] = field(default_factory=list)


@dataclass
class ContentOutline:
    """Article outline as returned by ``generate_outline``."""

    title: str
    meta_description: str
    headings: List[OutlineHeading] = field(default_factory=list)
    faqs: List[Dict[str, str]] = field(default_factory=list)


@dataclass
class GeneratedContent:
    """Article body plus the metadata derived from its outline."""

    title: str
    meta_title: str
    meta_description: str
    body: str
    outline: ContentOutline
    word_count: int = 0
    reading_time: int = 0

    def __post_init__(self) -> None:
        if self.word_count == 0 and self.body:
            self.word_count = len(self.body.split())
        if self.reading_time == 0 and self.word_count:
            self.reading_time = math.ceil(self.word_count / READING_SPEED_WPM)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def extract_json(text: str, expect: type = dict) -> Any:
    """
    Extract a JSON object (``expect=dict``) or array (``expect=list``) from
    a model response. Returns ``None`` when nothing of that shape parses.
    """
    text = (text or "").strip()
    try:
        data = json.loads(text)
        if isinstance(data, expect):
            return data
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json)?\s*\n?(.*?)```", text, re.DOTALL)
    if fenced:
        try:
            data = json.loads(fenced.group(1).strip())
            if isinstance(data, expect):
                return data
        except json.JSONDecodeError:
            pass

    open_char, close_char = ("[", "]") if expect is list else ("{", "}")
    start = text.find(open_char)
    end = text.rfind(close_char)
    if start != -1 and end > start:
        try:
            data = json.loads(text[start:end + 1])
            if isinstance(data, expect):
                return data
        except json.JSONDecodeError:
            pass

    logger.warning("Failed to extract JSON %s from response (%d chars)", expect.__name__, len(text))
    return None


def truncate_meta_title(title: str) -> str:
    if len(title) > META_TITLE_MAX_LENGTH:
        return title[:META_TITLE_MAX_LENGTH - 3] + "..."
    return title


def fallback_outline(keyword: str, title: Optional[str] = None) -> ContentOutline:
    """Deterministic outline used when the model's outline cannot be parsed."""
    subject = keyword.strip() or "this topic"
    label = subject.title()
    return ContentOutline(
        title=title or f"The Complete Guide to {label}",
        meta_description=(
            f"Learn everything about {subject}: what it is, why it matters "
            f"and how to get started."
        )[:META_DESCRIPTION_MAX_LENGTH],
        headings=[
            OutlineHeading(2, f"What Is {label}?", ["Definition", "Why it matters"]),
            OutlineHeading(2, f"How {label} Works", ["Key concepts", "Common use cases"]),
            OutlineHeading(2, f"Getting Started with {label}", ["First steps", "Tools you need"]),
            OutlineHeading(2, "Best Practices", ["Expert tips", "Mistakes to avoid"]),
            OutlineHeading(2, "Final Thoughts", ["Summary", "Next steps"]),
        ],
        faqs=[
            {"question": f"What is {subject}?", "answer": ""},
            {"question": f"How do I get started with {subject}?", "answer": ""},
            {"question": f"Is {subject} worth it?", "answer": ""},
        ],
    )


def _heading_level(value: Any, default: int = 2) -> int:
    """Heading depth from ``2``, ``"2"`` or ``"H2"``; *default* otherwise."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value if 1 <= value <= 6 else default
    match = re.search(r"[1-6]", str(value or ""))
    return int(match.group()) if match else default


def _string_list(value: Any) -> List[str]:
    """A list of strings from a JSON list or a comma-separated string."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(item) for item in value if item]
    return []


def _parse_outline(data: Dict[str, Any], keyword: str) -> ContentOutline:
    headings = []
    for h in data.get("headings") or []:
        if not isinstance(h, dict) or not h.get("text"):
            continue
        headings.append(
            OutlineHeading(
                level=_heading_level(h.get("level")),
                text=str(h["text"]),
                points=_string_list(h.get("points")),
            )
        )
    faqs = [
        {"question": str(f.get("question", "")), "answer": str(f.get("answer", ""))}
        for f in data.get("faqs") or []
        if isinstance(f, dict) and f.get("question")
    ]
    fallback = fallback_outline(keyword)
    return ContentOutline(
        title=str(data.get("title") or fallback.title),
        meta_description=str(data.get("metaDescription") or data.get("meta_description") or ""),
        headings=headings or fallback.headings,
        faqs=faqs,
    )


def _normalize_idea(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "title": raw.get("title", ""),
        "keyword": raw.get("keyword", ""),
        "intent": raw.get("intent", "informational"),
        "difficulty": raw.get("difficulty", "medium"),
        "estimated_traffic": raw.get("estimatedTraffic", raw.get("estimated_traffic", 0)),
        "estimated_words": raw.get("estimatedWords", raw.get("estimated_words")),
    }


def _render_outline(outline: ContentOutline) -> str:
    blocks = []
    for h in outline.headings:
        lines = [f"{'#' * max(1, h.level)} {h.text}"]
        lines.extend(f"- {p}" for p in h.points)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class AIClient:
    """
    Async Anthropic client with the pipeline's prompt templates.

    Parameters
    ----------
    api_key : str, optional
        Anthropic API key. Defaults to ``ANTHROPIC_API_KEY``.
    client : anthropic.AsyncAnthropic, optional
        Pre-built SDK client (tests inject a mock here).
    fast_model, writer_model : str, optional
        Model overrides for quick and long-form prompts.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[Any] = None,
        fast_model: Optional[str] = None,
        writer_model: Optional[str] = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
        self._client = client
        self.fast_model = fast_model or settings.MODEL_HAIKU
        self.writer_model = writer_model or settings.MODEL_SONNET

    def _ensure_client(self) -> Any:
        """Lazily initialize the async Anthropic client."""
        if self._client is None:
            if not self._api_key:
                raise AIClientError(
                    "ANTHROPIC_API_KEY environment variable is not set. "
                    "Set it before running the autopilot."
                )
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def close(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()

    async def _chat(
        self,
        system_prompt: str,
        user_prompt: str,
        model: str,
        max_tokens: int,
        temperature: float = 0.7,
    ) -> str:
        """Send one message and return the text of the reply."""
        client = self._ensure_client()

        logger.debug(
            "API call: model=%s max_tokens=%d system_len=%d user_len=%d",
            model, max_tokens, len(system_prompt), len(user_prompt),
        )
        start_time = time.monotonic()
        try:
            response = await client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as exc:
            elapsed = time.monotonic() - start_time
            logger.error("API call failed after %.1fs: %s", elapsed, exc)
            raise AIClientError(f"Anthropic API error: {exc}") from exc

        text = response.content[0].text if response.content else ""
        logger.debug(
            "API response: %d chars in %.1fs", len(text), time.monotonic() - start_time,
        )
        return text

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    async def cluster_keywords(self, keywords: List[str]) -> List[Dict[str, Any]]:
        """
        Group *keywords* into topical clusters.

        Returns a list of ``{name, pillar_keyword, keywords, suggested_articles}``
        dicts, or ``[]`` if the answer cannot be parsed.
        """
        prompt = (
            "You are an SEO expert. Analyze these keywords and group them into topical clusters.\n\n"
            "Keywords:\n" + "\n".join(keywords) + "\n\n"
            "For each cluster:\n"
            "1. Name the cluster based on the main topic\n"
            "2. Identify the pillar keyword (highest search intent, broadest topic)\n"
            "3. List supporting keywords, copied exactly from the list above\n"
            "4. Suggest number of articles needed\n\n"
            "Return JSON array:\n"
            '[{"name": "cluster name", "pillarKeyword": "main keyword", '
            '"keywords": ["keyword1", "keyword2"], "suggestedArticles": 5}]\n\n'
            "Only return valid JSON, no explanation."
        )
        raw = await self._chat(
            SYSTEM_JSON_SEO, prompt, self.fast_model, settings.MAX_TOKENS_QUICK, temperature=0.3,
        )
        data = extract_json(raw, expect=list)
        if data is None:
            return []
        return [
            {
                "name": c.get("name", ""),
                "pillar_keyword": c.get("pillarKeyword", c.get("pillar_keyword", "")),
                "keywords": _string_list(c.get("keywords")),
                "suggested_articles": c.get("suggestedArticles", c.get("suggested_articles", 0)),
            }
            for c in data
            if isinstance(c, dict)
        ]

    async def generate_article_ideas(
        self,
        topic: str,
        existing_articles: Optional[List[str]] = None,
        count: int = 10,
    ) -> List[Dict[str, Any]]:
        """Return up to *count* article ideas for *topic*; ``[]`` on a bad answer."""
        existing = existing_articles or []
        avoid = (
            "Existing articles (avoid duplicates):\n" + "\n".join(existing) + "\n\n"
            if existing else ""
        )
        prompt = (
            f'Generate {count} SEO article ideas for the topic: "{topic}"\n\n'
            f"{avoid}"
            "For each idea provide:\n"
            "1. Compelling title\n"
            "2. Target keyword\n"
            "3. Search intent (informational, commercial, transactional)\n"
            "4. Estimated difficulty (easy, medium, hard)\n"
            "5. Estimated monthly organic traffic once ranking\n\n"
            "Return JSON array:\n"
            '[{"title": "...", "keyword": "...", "intent": "informational", '
            '"difficulty": "easy", "estimatedTraffic": 500}]\n\n'
            "Only return valid JSON."
        )
        raw = await self._chat(
            SYSTEM_STRATEGIST, prompt, self.fast_model, settings.MAX_TOKENS_QUICK, temperature=0.8,
        )
        data = extract_json(raw, expect=list)
        if data is None:
            return []
        return [_normalize_idea(item) for item in data if isinstance(item, dict)][:count]

    async def generate_outline(
        self,
        keyword: str,
        references: List[Dict[str, str]],
        target_word_count: int = 2000,
    ) -> ContentOutline:
        """Outline an article for *keyword*; falls back to a template outline."""
        ref_lines = "\n".join(
            f"{i + 1}. {r.get('title', '')}\n   {r.get('description', '')}"
            for i, r in enumerate(references[:MAX_REFERENCE_RESULTS])
        )
        prompt = (
            f'Create an SEO-optimized content outline for the keyword: "{keyword}"\n\n'
            f"Top ranking content for reference:\n{ref_lines}\n\n"
            f"Target word count: {target_word_count}\n\n"
            "Create an outline that:\n"
            "1. Covers the topic comprehensively\n"
            "2. Includes unique angles not covered by competitors\n"
            "3. Has a compelling, click-worthy title\n"
            "4. Includes FAQ section with 3-5 questions\n\n"
            "Return JSON:\n"
            '{"title": "Article title", "metaDescription": "155 char meta description", '
            '"headings": [{"level": 2, "text": "Heading text", "points": ["point 1", "point 2"]}], '
            '"faqs": [{"question": "FAQ question?", "answer": "Brief answer"}]}\n\n'
            "Only return valid JSON."
        )
        raw = await self._chat(
            SYSTEM_OUTLINER, prompt, self.writer_model, settings.MAX_TOKENS_OUTLINE, temperature=0.6,
        )
        data = extract_json(raw, expect=dict)
        if data is None:
            logger.warning("Could not parse outline for '%s'; using fallback outline", keyword)
            return fallback_outline(keyword)
        return _parse_outline(data, keyword)

    async def generate_article(
        self,
        keyword: str,
        outline: ContentOutline,
        brand_voice: Optional[str] = None,
    ) -> GeneratedContent:
        """Write the full markdown article for *outline*."""
        voice = (
            f"Brand voice: {brand_voice}"
            if brand_voice
            else "Use a professional, engaging, and authoritative tone."
        )
        faqs = ""
        if outline.faqs:
            faqs = "FAQs to include:\n" + "\n".join(f"Q: {f['question']}" for f in outline.faqs)

        prompt = (
            f'Write a comprehensive, SEO-optimized article for: "{keyword}"\n\n'
            f"Title: {outline.title}\n"
            f"Meta Description: {outline.meta_description}\n\n"
            f"Outline:\n{_render_outline(outline)}\n\n"
            f"{faqs}\n\n{voice}\n\n"
            "Requirements:\n"
            "1. Write naturally, avoid keyword stuffing\n"
            "2. Use short paragraphs (2-3 sentences max)\n"
            "3. Include practical examples and actionable advice\n"
            "4. Make it scannable with bullet points where appropriate\n"
            "5. Write 2000+ words\n"
            "6. Use markdown formatting\n"
            "7. Include the FAQ section at the end with detailed answers\n\n"
            "Write the full article now:"
        )
        body = await self._chat(
            SYSTEM_WRITER, prompt, self.writer_model, settings.MAX_TOKENS_ARTICLE, temperature=0.7,
        )
        return GeneratedContent(
            title=outline.title,
            meta_title=truncate_meta_title(outline.title),
            meta_description=outline.meta_description,
            body=body,
            outline=outline,
        )

    async def generate_meta(self, content: str, keyword: str) -> Dict[str, str]:
        """
        Return ``{"meta_title", "meta_description"}`` for *content*.

        Falls back to the keyword and the first 155 characters of the
        content when the answer cannot be parsed.
        """
        prompt = (
            "Generate SEO-optimized meta tags for this content.\n\n"
            f"Target keyword: {keyword}\n\n"
            f"Content (first {META_CONTENT_SAMPLE} chars):\n{content[:META_CONTENT_SAMPLE]}\n\n"
            "Requirements:\n"
            f"- Meta title: max {META_TITLE_MAX_LENGTH} chars, include keyword naturally\n"
            f"- Meta description: max {META_DESCRIPTION_MAX_LENGTH} chars, compelling, include keyword\n\n"
            "Return JSON:\n"
            '{"metaTitle": "...", "metaDescription": "..."}'
        )
        raw = await self._chat(
            SYSTEM_JSON_SEO, prompt, self.fast_model, settings.MAX_TOKENS_QUICK, temperature=0.4,
        )
        data = extract_json(raw, expect=dict) or {}
        title = data.get("metaTitle") or data.get("meta_title")
        description = data.get("metaDescription") or data.get("meta_description")
        if not title or not description:
            return {
                "meta_title": keyword,
                "meta_description": content[:META_DESCRIPTION_MAX_LENGTH],
            }
        return {"meta_title": str(title), "meta_description": str(description)}
