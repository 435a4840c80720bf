"""
Command-line interface for Club Trip Sync.

Reads the same environment variables as the Lambda function, so an officer
can run a sync or check the service-account setup from a shell.
"""

import argparse
import json
import sys
from typing import List, Optional

from .auth import get_access_token
from .config import Config
from .context import AppContext
from .errors import TripSyncError
from .log import Logger, configure_logging, get_log_level
from .site_settings import get_site_settings
from .sync import sync_trips_with_calendar


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Sync club trips from Google Sheets to Google Calendar"
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use -v for warnings, -vv for debug)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Reconcile the calendar with the Trips sheet")
    sync_parser.add_argument(
        "--site-base-url",
        default=None,
        help="Site root used in RSVP links (defaults to SITE_BASE_URL)"
    )
    subparsers.add_parser("settings", help="Print the effective site settings")
    subparsers.add_parser("token", help="Mint an access token to check credentials")
    return parser.parse_args(argv)


def run_sync(ctx: AppContext, site_base_url: Optional[str]) -> int:
    report = sync_trips_with_calendar(ctx, site_base_url)
    print(json.dumps(report.to_dict(), indent=2))
    return 1 if report.errors else 0


def show_settings(ctx: AppContext) -> int:
    print(json.dumps(get_site_settings(ctx)["settings"], indent=2))
    return 0


def check_token(config: Config, logger: Logger) -> int:
    token = get_access_token(config.service_account_email, config.private_key)
    logger.normal(f"Obtained access token for {config.service_account_email}")
    logger.debug(f"Token prefix: {token[:8]}...")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Process exit status
    """
    args = parse_args(argv)
    logger = configure_logging(get_log_level(args.verbose))

    try:
        config = Config.from_env()
        if args.command == "token":
            return check_token(config, logger)

        ctx = AppContext.from_config(config, logger)
        if args.command == "settings":
            return show_settings(ctx)
        return run_sync(ctx, args.site_base_url)
    except TripSyncError as e:
        logger.error(e.message)
        return 1


if __name__ == "__main__":
    sys.exit(main())
