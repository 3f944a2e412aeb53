#!/usr/bin/env python3
"""CLI entry point for the cold-call service.

Usage:
    coldcall serve --port 3001
    coldcall check-env
    coldcall init-db
    coldcall discover --business-id 4f1c... --provider yelp
    coldcall call --business-id 4f1c...

Example:
    # Verify credentials, create tables, then start the API
    coldcall check-env && coldcall init-db && coldcall serve
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Optional

from .config import ConfigError, config
from .logging_utils import setup_logging


REQUIRED_VARS = [
    "OPENAI_API_KEY",
    "DATABASE_URL",
]
OPTIONAL_VARS = [
    "BROWSER_USE_API_KEY",
    "GOOGLE_MAPS_API_KEY",
    "YELP_API_KEY",
    "VAPI_API_KEY",
    "VAPI_PHONE_NUMBER_ID",
    "VAPI_WEBHOOK_SECRET",
]


def check_environment() -> dict[str, bool]:
    """Check which environment variables are set.

    Returns:
        Dictionary mapping env var names to their availability.
    """
    return {var: bool(os.environ.get(var)) for var in REQUIRED_VARS + OPTIONAL_VARS}


def print_env_status(status: dict[str, bool]) -> bool:
    """Print environment variable status.

    Returns:
        True if every required variable is set.
    """
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
    parser = argparse.ArgumentParser(
        prog="coldcall",
        description="Lead discovery, scoring and automated outbound calling.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=config.API_HOST)
    serve.add_argument("--port", type=int, default=config.API_PORT)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes")

    subparsers.add_parser("check-env", help="Show which environment variables are set")
    subparsers.add_parser("init-db", help="Create database tables")

    discover = subparsers.add_parser("discover", help="Discover leads for a business")
    discover.add_argument("--business-id", required=True)
    discover.add_argument("--provider", choices=["google", "yelp"], default="google")
    discover.add_argument("--max-results", type=int, default=None)

    call = subparsers.add_parser("call", help="Queue top leads and place calls")
    call.add_argument("--business-id", required=True)

    return parser


async def run_init_db() -> None:
    from .models import close_database, init_database

    try:
        await init_database()
    finally:
        await close_database()


async def run_discover(business_id: str, provider: str, max_results: Optional[int]) -> int:
    from .models import close_database, get_db_session
    from .services.discovery import discover_for_business

    try:
        async with get_db_session() as session:
            run = await discover_for_business(
                session, business_id, provider=provider, max_results=max_results
            )
    finally:
        await close_database()

    print(json.dumps({
        "lead_source_id": run.lead_source_id,
        "status": run.status,
        "leads": len(run.lead_ids),
        "total_found": run.total_found,
        "api_cost": run.api_cost,
        "error": run.error,
    }, indent=2))
    return 0 if run.success else 1


async def run_calls(business_id: str) -> int:
    from .integrations.vapi import VapiClient
    from .models import close_database, get_db_session
    from .services.call_orchestrator import CallOrchestrator

    try:
        async with VapiClient() as vapi, get_db_session() as session:
            orchestrator = CallOrchestrator(session, vapi_client=vapi)
            await orchestrator.queue_top_leads(business_id)
            placements = await orchestrator.call_queued_leads(business_id)
    finally:
        await close_database()

    print(json.dumps([p.to_dict() for p in placements], indent=2))
    return 0 if all(p.status != "failed" for p in placements) else 1


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = create_parser()
    args = parser.parse_args(argv)
    logger = setup_logging(level=args.log_level)

    if args.command == "check-env":
        return 0 if print_env_status(check_environment()) else 1

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "coldcall.api.app:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_config=None,
        )
        return 0

    try:
        config.validate_for_database()
        if args.command == "init-db":
            asyncio.run(run_init_db())
            print("Database tables created")
            return 0
        if args.command == "discover":
            return asyncio.run(run_discover(args.business_id, args.provider, args.max_results))
        if args.command == "call":
            config.validate_for_calling()
            return asyncio.run(run_calls(args.business_id))
    except ConfigError as e:
        print(f"Error: {e}")
        return 1
    except Exception as e:
        logger.error("Command %s failed: %s", args.command, e, exc_info=True)
        return 1

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
