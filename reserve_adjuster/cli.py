"""Command line entry points for the reserve adjuster.

Usage:
    python -m reserve_adjuster login --username me@example.com --mfa 123456
    python -m reserve_adjuster reconcile
    python -m reserve_adjuster settings
    python -m reserve_adjuster reserve 30
    python -m reserve_adjuster holiday add 2026-12-25 2026-12-26
    python -m reserve_adjuster holiday remove 2026-12-26
    python -m reserve_adjuster notify subscribe mobile_app_pixel
    python -m reserve_adjuster session

Errors in interactive commands are reported and exit with status 1.
"""

import argparse
import getpass
import json
import logging
import os
import sys
from typing import List, Optional

from shared.addon_base import setup_logging
from shared.config_loader import DEFAULT_CONFIG_PATH

from .errors import ReserveAdjusterError
from .reconciler import OutcomeKind
from .services import Services, build_services, load_config

logger = logging.getLogger(__name__)


def _print_json(value) -> None:
    print(json.dumps(value, indent=2))


def cmd_login(services: Services, args: argparse.Namespace) -> int:
    username = args.username or os.getenv('TESLA_USERNAME') or input("Tesla username: ")
    password = args.password or os.getenv('TESLA_PASSWORD') or getpass.getpass("Tesla password: ")
    credential = services.credentials.login(username, password, args.mfa)
    print(f"Login successful, access token valid until {credential.expires_at.isoformat()}")
    return 0


def cmd_reconcile(services: Services, args: argparse.Namespace) -> int:
    outcome = services.reconciler.reconcile()
    print(outcome.summary())
    return 1 if outcome.kind == OutcomeKind.FAILED else 0


def cmd_session(services: Services, args: argparse.Namespace) -> int:
    print(services.credentials.state().value)
    return 0


def cmd_settings(services: Services, args: argparse.Namespace) -> int:
    _print_json(services.settings.snapshot())
    return 0


def cmd_reserve(services: Services, args: argparse.Namespace) -> int:
    if args.value is None:
        print(services.settings.peak_reserve())
    else:
        print(services.settings.set_peak_reserve(args.value))
    return 0


def cmd_holiday(services: Services, args: argparse.Namespace) -> int:
    if args.action == 'add':
        holidays = services.settings.add_holidays(args.dates)
    elif args.action == 'remove':
        holidays = services.settings.remove_holidays(args.dates)
    else:
        holidays = services.settings.holidays()
    _print_json(holidays)
    return 0


def cmd_notify(services: Services, args: argparse.Namespace) -> int:
    if args.action in ('subscribe', 'unsubscribe') and not args.address:
        raise SystemExit(f"notify {args.action} needs a notify service name")

    if args.action == 'subscribe':
        _print_json(services.notifier.subscribe(args.address))
    elif args.action == 'unsubscribe':
        _print_json(services.notifier.unsubscribe(args.address))
    elif args.action == 'test':
        delivered = services.notifier.notify("Powerwall Reserve Adjuster test", "Test notification")
        return 0 if delivered else 1
    else:
        _print_json(services.notifier.get_subscriptions())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reserve_adjuster",
        description="Adjust the Powerwall backup reserve around TOU peak periods",
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to options JSON")
    parser.add_argument("--settings-file", help="Override the settings file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Log in to Tesla and store tokens")
    login.add_argument("--username", help="Tesla account e-mail (or TESLA_USERNAME)")
    login.add_argument("--password", help="Tesla password (or TESLA_PASSWORD, prompted if absent)")
    login.add_argument("--mfa", help="MFA passcode, if enabled on the account")
    login.set_defaults(func=cmd_login)

    reconcile = subparsers.add_parser("reconcile", help="Run one reserve reconciliation")
    reconcile.set_defaults(func=cmd_reconcile)

    session = subparsers.add_parser("session", help="Show the stored credential state")
    session.set_defaults(func=cmd_session)

    settings = subparsers.add_parser("settings", help="Show all settings")
    settings.set_defaults(func=cmd_settings)

    reserve = subparsers.add_parser("reserve", help="Show or set the peak reserve (5-100)")
    reserve.add_argument("value", nargs="?", help="New peak reserve percentage")
    reserve.set_defaults(func=cmd_reserve)

    holiday = subparsers.add_parser("holiday", help="Manage holidays (no peak reserve)")
    holiday.add_argument("action", choices=["add", "remove", "list"])
    holiday.add_argument("dates", nargs="*", help="Dates as YYYY-MM-DD")
    holiday.set_defaults(func=cmd_holiday)

    notify = subparsers.add_parser("notify", help="Manage alert subscriptions")
    notify.add_argument("action", choices=["subscribe", "unsubscribe", "list", "test"])
    notify.add_argument("address", nargs="?", help="Notify service, e.g. mobile_app_pixel")
    notify.set_defaults(func=cmd_notify)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO, name="reserve_adjuster")

    try:
        config = load_config(args.config)
    except (KeyError, ValueError, OSError) as e:
        logger.error("Failed to load configuration: %s", e)
        return 1
    if args.settings_file:
        config['settings_file'] = args.settings_file

    services = build_services(config, lookup_time_zone=(args.command == "reconcile"))

    try:
        return args.func(services, args)
    except ReserveAdjusterError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
