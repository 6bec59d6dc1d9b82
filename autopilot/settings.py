"""Process-wide settings read from the environment (and a local .env file)."""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
DATAFORSEO_LOGIN = os.getenv("DATAFORSEO_LOGIN", "")
DATAFORSEO_PASSWORD = os.getenv("DATAFORSEO_PASSWORD", "")
DATAFORSEO_BASE_URL = os.getenv("DATAFORSEO_BASE_URL", "https://api.dataforseo.com")

# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------

HTTP_TIMEOUT = float(os.getenv("AUTOPILOT_HTTP_TIMEOUT", "30"))
USER_AGENT = os.getenv(
    "AUTOPILOT_USER_AGENT",
    "CabbageSEO-Autopilot/1.0 (+https://cabbageseo.com)",
)

# ---------------------------------------------------------------------------
# Anthropic models
# ---------------------------------------------------------------------------

# Quick analytical tasks: clustering, ideation, meta tags
MODEL_HAIKU = os.getenv("AUTOPILOT_FAST_MODEL", "claude-haiku-4-5")
# Long-form tasks: outlines, article bodies
MODEL_SONNET = os.getenv("AUTOPILOT_WRITER_MODEL", "claude-sonnet-4-5")

MAX_TOKENS_QUICK = 2000
MAX_TOKENS_OUTLINE = 4000
MAX_TOKENS_ARTICLE = 8192
