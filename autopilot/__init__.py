"""
CabbageSEO Autopilot

Sequential content pipeline for a single site: discover the site's pages,
cluster keyword opportunities, plan a content calendar, write the first
article and optionally publish it to WordPress.

Usage:
    from autopilot.engine import start_autopilot

    result = await start_autopilot("https://example.com", "org_1", "site_1")
"""

__version__ = "1.0.0"
