#!/usr/bin/env python3
"""CLI entry point for the lead pipeline.

Runs the API server or invokes a pipeline function directly against the
database, printing the JSON response.

Usage:
    lead-pipeline serve --port 8080
    lead-pipeline check-env
    lead-pipeline enrich LEAD_ID [LEAD_ID ...]
    lead-pipeline run LEAD_ID [LEAD_ID ...] --skip contacts --verbose
    lead-pipeline analytics --start-date 2026-09-01 --end-date 2026-09-30

Example:
    # Nightly jobs
    lead-pipeline reenrich --threshold-days 30 --max-leads 25
    lead-pipeline nurture --mode auto
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from .config import ConfigError, config
from .errors import PipelineError
from .logging_utils import setup_logging as configure_logging

REQUIRED_VARS = ["DATABASE_URL"]
OPTIONAL_VARS = [
    "APOLLO_API_KEY",
    "HUNTER_API_KEY",
    "PDL_API_KEY",
    "CLEARBIT_API_KEY",
    "ZEROBOUNCE_API_KEY",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "FIRECRAWL_API_KEY",
    "LLM_API_KEY",
    "JWT_SECRET",
    "SERVICE_ROLE_KEY",
    "CRON_SECRET",
]


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Configure logging for the CLI.

    Args:
        verbose: Enable verbose output (INFO level).
        debug: Enable debug output (DEBUG level).

    Returns:
        Configured logger instance.
    """
    level = "WARNING"
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    return configure_logging(level=level, structured=False if (verbose or debug) else None)


def check_environment() -> dict[str, bool]:
    """Map each known environment variable to whether it is set."""
    values = {
        "DATABASE_URL": config.DATABASE_URL,
        "APOLLO_API_KEY": config.APOLLO_API_KEY,
        "HUNTER_API_KEY": config.HUNTER_API_KEY,
        "PDL_API_KEY": config.PDL_API_KEY,
        "CLEARBIT_API_KEY": config.CLEARBIT_API_KEY,
        "ZEROBOUNCE_API_KEY": config.ZEROBOUNCE_API_KEY,
        "TWILIO_ACCOUNT_SID": config.TWILIO_ACCOUNT_SID,
        "TWILIO_AUTH_TOKEN": config.TWILIO_AUTH_TOKEN,
        "FIRECRAWL_API_KEY": config.FIRECRAWL_API_KEY,
        "LLM_API_KEY": config.LLM_API_KEY,
        "JWT_SECRET": config.JWT_SECRET,
        "SERVICE_ROLE_KEY": config.SERVICE_ROLE_KEY,
        "CRON_SECRET": config.CRON_SECRET,
    }
    return {name: bool(value) for name, value in values.items()}


def print_env_status(status: dict[str, bool]) -> bool:
    """Print environment variable status; False when a required one is missing."""
    print("\nEnvironment Status:")
    print("-" * 40)

    missing_required = []
    for var in REQUIRED_VARS:
        symbol = "✓" if status.get(var) else "✗"
        print(f"  [{symbol}] {var} (required)")
        if not status.get(var):
            missing_required.append(var)

    print()
    for var in OPTIONAL_VARS:
        symbol = "✓" if status.get(var) else "-"
        print(f"  [{symbol}] {var} (optional)")

    print("-" * 40)

    if missing_required:
        print(f"\nError: Missing required environment variables: {', '.join(missing_required)}")
        return False
    return True


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="lead-pipeline",
        description="Lead enrichment, validation and scoring pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--output", "-o", default=None, help="Save the JSON result to a file")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=config.API_HOST)
    serve.add_argument("--port", type=int, default=config.API_PORT)

    sub.add_parser("check-env", help="Check environment variables and exit")
    sub.add_parser("init-db", help="Create database tables")

    for name, help_text in (
        ("enrich", "Fill missing contact fields on leads"),
        ("validate", "Validate lead emails and phones"),
        ("signals", "Detect intent signals"),
        ("technographics", "Detect tech stack and estimate revenue"),
        ("contacts", "Extract contacts from site pages"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("lead_ids", nargs="+")

    score = sub.add_parser("score", help="Score leads")
    score.add_argument("lead_ids", nargs="+")
    score.add_argument(
        "--llm",
        action="store_true",
        help="Treat ids as CRM leads and score them with the LLM",
    )
    score.add_argument("--target-industry", default=None)
    score.add_argument("--target-titles", default="", help="Comma-separated titles")

    analytics = sub.add_parser("analytics", help="Per-source analytics")
    analytics.add_argument("--start-date", default=None)
    analytics.add_argument("--end-date", default=None)
    analytics.add_argument("--source-type", default=None)

    nurture = sub.add_parser("nurture", help="Hot lead alerts and nurture enrollment")
    nurture.add_argument("--mode", choices=["auto", "alerts_only", "nurture_only"], default="auto")

    dedupe = sub.add_parser("dedupe", help="Detect duplicate leads")
    dedupe.add_argument("--job-id", default=None)
    dedupe.add_argument("--lead-ids", nargs="*", default=None)
    dedupe.add_argument("--auto-merge", action="store_true")

    reenrich = sub.add_parser("reenrich", help="Re-enrich stale leads")
    reenrich.add_argument("--threshold-days", type=int, default=30)
    reenrich.add_argument("--max-leads", type=int, default=25)
    reenrich.add_argument("--lead-ids", nargs="*", default=None)

    run = sub.add_parser("run", help="Run the full per-lead pipeline")
    run.add_argument("lead_ids", nargs="+")
    run.add_argument(
        "--skip",
        action="append",
        default=[],
        help="Step to skip (repeatable): enrich, technographics, contacts, "
        "validation, signals, score, webhook",
    )
    run.add_argument("--max-retries", type=int, default=None)
    run.add_argument("--retry-delay", type=float, default=None)

    return parser


async def _with_services(handler: Callable[[Any, Any], Awaitable[Any]]) -> Any:
    """Run ``handler(repository, clients)`` inside one committed session."""
    from .integrations.registry import ProviderClients
    from .models import close_database, get_db_session
    from .repository import LeadRepository

    clients = ProviderClients.from_config(config)
    try:
        async with get_db_session() as session:
            return await handler(LeadRepository(session), clients)
    finally:
        clients.close()
        await close_database()


async def _dispatch(args: argparse.Namespace) -> Any:
    from .analytics import ScraperAnalytics
    from .automation import AutoNurture
    from .enrichment import (
        ContactPageExtractor,
        LeadDeduplicator,
        LeadEnricher,
        LeadValidator,
        StaleLeadReEnricher,
        TechnographicsEnricher,
    )
    from .orchestrator import LeadPipeline, PipelineOptions, PipelineStep
    from .scoring import CompositeLeadScorer, IntentSignalDetector, LeadScorer
    from .scoring.composite import ScoringCriteria

    command = args.command

    async def handler(repository, clients):
        if command == "enrich":
            enricher = LeadEnricher(repository, clients.apollo, clients.hunter, clients.clearbit)
            return await enricher.run(lead_ids=args.lead_ids)
        if command == "validate":
            validator = LeadValidator(repository, clients.dns, clients.zerobounce, clients.twilio)
            return await validator.run(lead_ids=args.lead_ids)
        if command == "signals":
            return await IntentSignalDetector(repository).run(lead_ids=args.lead_ids)
        if command == "technographics":
            return await TechnographicsEnricher(repository, clients.firecrawl).run(args.lead_ids)
        if command == "contacts":
            return await ContactPageExtractor(repository, clients.firecrawl).run(args.lead_ids)
        if command == "score":
            if args.llm:
                scorer = LeadScorer(repository, clients.llm)
                return [
                    {"lead_id": lead_id, **await scorer.run(lead_id, None, is_admin=True)}
                    for lead_id in args.lead_ids
                ]
            criteria = {
                "target_industry": args.target_industry,
                "target_titles": [t.strip() for t in args.target_titles.split(",") if t.strip()],
            }
            return await CompositeLeadScorer(repository).run(args.lead_ids, criteria)
        if command == "analytics":
            return await ScraperAnalytics(repository).run(
                args.start_date, args.end_date, args.source_type
            )
        if command == "nurture":
            return await AutoNurture(repository, clients.webhooks).run(args.mode)
        if command == "dedupe":
            return await LeadDeduplicator(repository).run(
                args.job_id, args.lead_ids, args.auto_merge
            )
        if command == "reenrich":
            enricher = LeadEnricher(repository, clients.apollo, clients.hunter, clients.clearbit)
            technographics = (
                TechnographicsEnricher(repository, clients.firecrawl) if clients.firecrawl else None
            )
            return await StaleLeadReEnricher(repository, enricher, technographics).run(
                args.threshold_days, args.max_leads, args.lead_ids
            )
        if command == "run":
            overrides: dict[str, Any] = {"skip_steps": {PipelineStep(s) for s in args.skip}}
            if args.max_retries is not None:
                overrides["max_retries"] = args.max_retries
            if args.retry_delay is not None:
                overrides["retry_delay_seconds"] = args.retry_delay
            options = PipelineOptions.from_config(**overrides)
            result = await LeadPipeline(repository, clients, options).run(args.lead_ids)
            return result.to_dict()
        raise ValueError(f"Unknown command: {command}")

    return await _with_services(handler)


async def _init_db() -> None:
    from .models import close_database, init_database

    try:
        await init_database()
    finally:
        await close_database()


def _emit(result: Any, output: Optional[str]) -> None:
    text = json.dumps(result, indent=2, default=str)
    if output:
        output_path = Path(output)
        output_path.write_text(text)
        print(f"Results saved to: {output_path}")
    else:
        print(text)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    logger = setup_logging(verbose=args.verbose, debug=args.debug)

    if args.command == "check-env":
        return 0 if print_env_status(check_environment()) else 1

    if args.command == "serve":
        import uvicorn

        try:
            config.validate_for_api()
        except ConfigError as e:
            print(f"Error: {e}")
            return 1
        uvicorn.run("lead_pipeline.api.app:app", host=args.host, port=args.port)
        return 0

    try:
        config.validate_for_database()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    if args.command == "init-db":
        asyncio.run(_init_db())
        print("Database tables created.")
        return 0

    try:
        result = asyncio.run(_dispatch(args))
    except PipelineError as e:
        print(f"Error ({e.status_code}): {e.message}")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\nCancelled by user.")
        return 130
    except Exception as e:
        logger.exception("Command %s failed", args.command)
        print(f"\nError: {args.command} failed: {e}")
        return 1

    _emit(result, args.output)
    if isinstance(result, dict) and result.get("success") is False:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
