"""
Autopilot command line.

Usage:
    autopilot run --site-url https://example.com [--publish [--live]] [--output result.json]
    autopilot discover --site-url https://example.com
    autopilot plan --site-url https://example.com

A JSON file passed with ``--config`` supplies the full ``AutopilotConfig``
(including WordPress credentials); flags given on the command line win.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from autopilot import __version__
from autopilot.ai_client import AIClientError
from autopilot.content import AutopilotError
from autopilot.engine import AutopilotEngine
from autopilot.models import VALID_TONES, AutopilotConfig, AutopilotProgress

logger = logging.getLogger("autopilot.cli")

DEFAULT_CLI_ID = "cli"


def _print_progress(update: AutopilotProgress) -> None:
    print(f"[{update.phase.value:<10}] {update.progress:5.1f}%  {update.message}")


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _load_config(args: argparse.Namespace) -> AutopilotConfig:
    """Merge the optional ``--config`` file with command-line flags."""
    data: Dict[str, Any] = {}
    config_path = getattr(args, "config", None)
    if config_path:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)

    overrides = {
        "site_url": args.site_url,
        "organization_id": getattr(args, "org", None),
        "site_id": getattr(args, "site_id", None),
        "content_tone": getattr(args, "tone", None),
        "articles_per_week": getattr(args, "articles_per_week", None),
    }
    for key, value in overrides.items():
        if value is not None:
            data[key] = value
    if getattr(args, "live", False):
        data["auto_publish"] = True

    data.setdefault("organization_id", data.get("organizationId", DEFAULT_CLI_ID))
    data.setdefault("site_id", data.get("siteId", DEFAULT_CLI_ID))
    return AutopilotConfig.from_dict(data)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _run_run(args: argparse.Namespace) -> int:
    """Execute the full pipeline, optionally publishing the article."""
    config = _load_config(args)
    async with AutopilotEngine(config, on_progress=_print_progress) as engine:
        result = await engine.run()
        output = result.to_dict()
        if args.publish:
            publish = await engine.publish(result.generated_article)
            output["publish"] = publish.to_dict()

    if args.output:
        Path(args.output).write_text(json.dumps(output, indent=2, ensure_ascii=False), encoding="utf-8")
        print(f"\nResult saved to: {args.output}")

    article = result.generated_article
    print("\n" + "=" * 70)
    print("AUTOPILOT RUN COMPLETE")
    print("=" * 70)
    print(f"Pages crawled:    {len(result.discovery.pages)}/{result.discovery.estimated_pages}")
    print(f"Technologies:     {', '.join(result.discovery.technologies) or 'none'}")
    print(f"Clusters:         {len(result.clusters)}")
    print(f"Planned articles: {result.plan.total_articles}")
    print(f"Article:          {article.title}")
    print(f"Meta title:       {article.meta.title}")
    print(f"Meta description: {article.meta.description}")
    if "publish" in output:
        pub = output["publish"]
        print(f"Published:        {pub['url'] if pub['success'] else 'FAILED: ' + str(pub['error'])}")
    print("=" * 70)
    return 0


async def _run_discover(args: argparse.Namespace) -> int:
    config = _load_config(args)
    async with AutopilotEngine(config) as engine:
        result = await engine.discover()
    _print_json(result.to_dict())
    return 0


async def _run_plan(args: argparse.Namespace) -> int:
    """Discovery, analysis and strategy; prints the content plan."""
    config = _load_config(args)
    async with AutopilotEngine(config, on_progress=_print_progress) as engine:
        discovery = await engine.discover()
        clusters = await engine.analyze(discovery)
        plan = await engine.create_strategy(clusters)
    _print_json(plan.to_dict())
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def _build_cli_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI interface."""
    parser = argparse.ArgumentParser(
        prog="autopilot",
        description="CabbageSEO Autopilot: site URL in, keyword strategy and draft article out.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # -- run --
    run_parser = subparsers.add_parser("run", help="Run the full autopilot cycle")
    run_parser.add_argument("--site-url", required=False, default=None, help="Site to analyze")
    run_parser.add_argument("--org", default=None, help="Organization ID")
    run_parser.add_argument("--site-id", default=None, help="Site ID")
    run_parser.add_argument(
        "--tone", default=None, choices=VALID_TONES,
        help="Content tone (default: professional)",
    )
    run_parser.add_argument(
        "--articles-per-week", type=int, default=None,
        help="Articles per week in the plan (default: 2)",
    )
    run_parser.add_argument("--config", default=None, help="JSON file with an AutopilotConfig")
    run_parser.add_argument(
        "--publish", action="store_true",
        help="Push the generated article to WordPress (as a draft unless --live)",
    )
    run_parser.add_argument(
        "--live", action="store_true",
        help="With --publish, publish the post live instead of as a draft",
    )
    run_parser.add_argument("--output", default=None, help="Write the run result JSON here")

    # -- discover --
    discover_parser = subparsers.add_parser("discover", help="Discover site pages and CMS")
    discover_parser.add_argument("--site-url", required=True, help="Site to analyze")

    # -- plan --
    plan_parser = subparsers.add_parser("plan", help="Build a keyword strategy and content plan")
    plan_parser.add_argument("--site-url", required=True, help="Site to analyze")
    plan_parser.add_argument(
        "--articles-per-week", type=int, default=None,
        help="Articles per week in the plan (default: 2)",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns the process exit code."""
    parser = _build_cli_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run" and not args.site_url and not args.config:
        parser.error("run requires --site-url or --config")

    command_map = {
        "run": _run_run,
        "discover": _run_discover,
        "plan": _run_plan,
    }
    handler = command_map[args.command]

    try:
        return asyncio.run(handler(args))
    except (ValueError, OSError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    except (AutopilotError, AIClientError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    except KeyboardInterrupt:
        print("\nAborted.")
        return 130


if __name__ == "__main__":
    sys.exit(main())
