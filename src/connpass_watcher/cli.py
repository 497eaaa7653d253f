"""Command-line interface for connpass-watcher."""

import argparse
import asyncio
import json
import logging
import sys

from connpass_watcher import __version__
from connpass_watcher.app import open_scanner
from connpass_watcher.calendar.auth import CalendarAuthError, authenticate
from connpass_watcher.calendar.google_calendar import GoogleCalendarClient
from connpass_watcher.config import ConfigError, Settings, load_settings
from connpass_watcher.models.scan import ScanAction, ScanResult
from connpass_watcher.scanner import ScanReport
from connpass_watcher.scheduler import ScanScheduler
from connpass_watcher.utils.rate_limiter import RateLimiters

logger = logging.getLogger(__name__)

RULE = "-" * 80


def configure_logging(level: str, verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _format_result(result: ScanResult) -> list[str]:
    event = result.event
    classification = result.classification
    lines = [
        "",
        event.title,
        f"   {event.place or 'オンライン'}{' (online)' if event.is_online else ''}",
        f"   {event.started_at.isoformat()}",
        f"   {event.url}",
    ]

    if classification is not None:
        speaker = classification.speaker
        if speaker.has_opportunity:
            lines.append(f"   登壇機会: {', '.join(speaker.detected_keywords) or 'あり'}")
        lines.append(f"   スコア: {classification.interest.score}/100")
        if classification.interest.llm_reason:
            lines.append(f"   理由: {classification.interest.llm_reason}")

    if result.action == ScanAction.REGISTERED:
        lines.append("   カレンダーに登録済み")
    elif result.action == ScanAction.UPDATED:
        lines.append("   カレンダーを更新済み")
    else:
        lines.append("   スキップ (dry-run、認証なし、または同期失敗)")
    return lines


def format_report(report: ScanReport) -> str:
    """Human-readable scan summary followed by the matched events."""
    matched = report.matched
    lines = [
        "",
        "=== Scan Results ===",
        "",
        f"Total events: {report.total}",
        f"Matched: {len(matched)}",
        f"Already processed: {report.count(ScanAction.ALREADY_PROCESSED)}",
        f"No match: {report.count(ScanAction.NO_MATCH)}",
        f"Excluded: {report.count(ScanAction.EXCLUDED)}",
        "",
    ]

    if not matched:
        lines.append("No matching events found.")
        return "\n".join(lines)

    lines.append("Matched Events:")
    lines.append(RULE)
    for result in matched:
        lines.extend(_format_result(result))
    lines.append("")
    lines.append(RULE)
    return "\n".join(lines)


async def run_scan(
    settings: Settings,
    dry_run: bool = False,
    limiters: RateLimiters | None = None,
) -> ScanReport:
    """Run one scan with freshly opened resources."""
    async with open_scanner(settings, limiters) as scanner:
        return await scanner.scan(dry_run=dry_run)


def cmd_scan(args: argparse.Namespace, settings: Settings) -> int:
    logger.info("Starting scan")
    try:
        report = asyncio.run(run_scan(settings, dry_run=args.dry_run))
    except Exception as e:
        logger.exception(f"Scan failed: {e}")
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(format_report(report))
    logger.info("Scan completed")
    return 0


def cmd_auth(args: argparse.Namespace, settings: Settings) -> int:
    client = GoogleCalendarClient(settings.app_dir, settings.google_calendar.calendar_id)
    if client.is_authenticated():
        print("Already authenticated with Google Calendar.")
        return 0

    print("Opening a browser for Google Calendar authorization...")
    try:
        authenticate(settings.app_dir)
    except CalendarAuthError as e:
        logger.error(f"Authentication failed: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Authentication failed: {e}")
        return 1

    print("Google Calendar authentication successful!")
    return 0


def cmd_daemon(args: argparse.Namespace, settings: Settings) -> int:
    cron = settings.schedule.cron
    if not cron:
        print("Error: No cron schedule configured in config file.", file=sys.stderr)
        print("Add 'schedule.cron' to your config.yaml", file=sys.stderr)
        return 1

    limiters = RateLimiters.from_settings(settings)

    async def scheduled_scan() -> None:
        logger.info("Running scheduled scan")
        report = await run_scan(settings, limiters=limiters)
        logger.info(f"Scheduled scan completed: {report.total} events, {len(report.matched)} matched")

    try:
        scheduler = ScanScheduler(cron, scheduled_scan, timezone=settings.google_calendar.timezone)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"\nScheduled to run: {cron}")
    print("Press Ctrl+C to stop.\n")
    try:
        asyncio.run(scheduler.run_forever())
    except KeyboardInterrupt:
        logger.info("Shutting down daemon")
    return 0


COMMANDS = {
    "scan": cmd_scan,
    "auth": cmd_auth,
    "daemon": cmd_daemon,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="connpass-watcher",
        description="Monitor connpass events for speaking opportunities and interests",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Scan command
    scan_parser = subparsers.add_parser("scan", help="Scan connpass events once")
    scan_parser.add_argument("-c", "--config", help="Path to config file")
    scan_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show results without registering to calendar",
    )
    scan_parser.add_argument(
        "--json",
        action="store_true",
        help="Output results as JSON",
    )

    # Auth command
    auth_parser = subparsers.add_parser("auth", help="Authenticate with Google Calendar")
    auth_parser.add_argument("-c", "--config", help="Path to config file")

    # Daemon command
    daemon_parser = subparsers.add_parser(
        "daemon", help="Run as a daemon with scheduled execution"
    )
    daemon_parser.add_argument("-c", "--config", help="Path to config file")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        configure_logging("INFO", args.verbose)
        logger.error(str(e))
        return 1

    configure_logging(settings.log_level, args.verbose)
    return COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())
