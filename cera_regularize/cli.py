#!/usr/bin/env python3
"""
Command-line entry point for the attendance regularization automation.
"""
import sys
import json
import argparse
import logging
from datetime import date
from typing import List, Optional, Tuple

from cera_regularize.attendance_automator import AttendanceAutomator
from cera_regularize.exceptions import PortalError
from cera_regularize.utils import setup_logging

logger = logging.getLogger(__name__)


def parse_assignment(value: str) -> Tuple[date, str]:
    """
    Parse a "YYYY-MM-DD[:span]" argument.

    Examples:
        "2024-03-05" -> (date(2024, 3, 5), "full")
        "2024-03-06:first" -> (date(2024, 3, 6), "first")
    """
    day, _, span = value.partition(":")
    try:
        return date.fromisoformat(day.strip()), span.strip() or "full"
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date '{day}', expected YYYY-MM-DD[:span]") from None


def print_status(message: str, level: str, advance: bool) -> None:
    log = logger.warning if level in ("warning", "error") else logger.info
    log(f"[status] {message}")


def verify_session(automator: AttendanceAutomator) -> bool:
    """Check the session (logging in if needed) and mark the login as verified."""
    if not automator.ensure_session_alive(status_callback=print_status, allow_unverified=True):
        logger.error(f"Session check failed: {automator.last_session_message}")
        return False
    automator.login_verified = True
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Automate attendance regularization on the eHRMS portal")
    parser.add_argument("--headless", action="store_true", default=None, help="Run browser in headless mode")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=str, help="Path to log file")
    parser.add_argument("--username", type=str, help="Portal username (overrides ATT_USERNAME)")
    parser.add_argument("--password", type=str, help="Portal password (overrides ATT_PASSWORD)")
    parser.add_argument("--portal-url", type=str, help="Portal login URL (overrides PORTAL_URL)")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("test-login", help="Force a fresh login and report the result")
    check = commands.add_parser("check-session", help="Check that the portal session is alive")
    check.add_argument("--force-login", action="store_true", help="Log in even if the session looks alive")
    history = commands.add_parser("history", help="Print the reconciled attendance history as JSON")
    history.add_argument("--output", type=str, help="Write the snapshot to this file instead of stdout")
    commands.add_parser("profile", help="Print the employee profile summary")
    commands.add_parser("initials", help="Print the logged-in user's initials")
    regularize = commands.add_parser("regularize", help="Submit WFO or WFH for one or more dates")
    regularize.add_argument("--mode", choices=["wfo", "wfh"], required=True, help="Attendance mode")
    regularize.add_argument(
        "dates",
        nargs="+",
        type=parse_assignment,
        help="Dates as YYYY-MM-DD[:full|first_half|second_half]",
    )
    return parser


def run_command(automator: AttendanceAutomator, args: argparse.Namespace) -> int:
    if args.command == "test-login":
        result = automator.test_login(headless=args.headless)
        (logger.info if result else logger.error)(f"Test login: {result.message}")
        return 0 if result else 1

    if args.command == "check-session":
        alive = automator.ensure_session_alive(
            status_callback=print_status,
            headless=args.headless,
            force_login=args.force_login,
            allow_unverified=True,
        )
        (logger.info if alive else logger.error)(f"Session: {automator.last_session_message}")
        return 0 if alive else 1

    if args.command == "initials":
        print(automator.get_user_initials(headless=args.headless))
        return 0

    if not verify_session(automator):
        return 1

    if args.command == "history":
        snapshot = automator.collect_history_snapshot()
        if snapshot is None:
            return 1
        payload = json.dumps(snapshot.to_dict(), indent=2)
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(payload)
            logger.info(f"History snapshot written to {args.output}")
        else:
            print(payload)
        return 0

    if args.command == "profile":
        summary = automator.collect_profile_summary(headless=args.headless)
        if summary is None:
            logger.error("Profile summary not available")
            return 1
        print(f"Employee name:     {summary.employee_name}")
        print(f"Employee ID:       {summary.employee_id}")
        print(f"Designation:       {summary.designation}")
        print(f"Reporting manager: {summary.reporting_manager}")
        return 0

    outcomes = automator.regularize_dates(args.dates, args.mode, status_callback=print_status, headless=args.headless)
    skipped = [o for o in outcomes if o.skipped]

    logger.info(f"\n{'='*60}")
    logger.info("SUMMARY")
    logger.info(f"{'='*60}")
    logger.info(f"Dates processed: {len(outcomes)}")
    logger.info(f"Submitted: {len(outcomes) - len(skipped)}")
    for outcome in skipped:
        logger.info(f"Skipped {outcome.date.isoformat()}: {outcome.reason}")
    logger.info(f"{'='*60}\n")
    return 1 if skipped else 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main execution function."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)

    automator = AttendanceAutomator(
        username=args.username,
        password=args.password,
        headless=args.headless,
        portal_url=args.portal_url,
    )
    try:
        sys.exit(run_command(automator, args))
    except KeyboardInterrupt:
        logger.info("\nInterrupted by user")
        sys.exit(130)
    except PortalError as e:
        logger.error(str(e))
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        automator.close()


if __name__ == "__main__":
    main()
