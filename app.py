"""
app.py

Responsibility: Command-line entry point. Parses flags, sets up logging,
loads configuration and runs the DDNS loop until SIGINT/SIGTERM.
Does NOT: contain DNS business logic, which lives in DnsService.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from config import AppConfig, load_config
from dependencies import build_dns_service, create_http_client, create_telegram_http_client
from exceptions import ConfigLoadError
from logger import setup_logging
from scheduler import create_scheduler
from services.notify_service import NotifyService
from shared_templates import APP_VERSION
from watcher import create_observer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ddns",
        description="DDNS client keeping DNSPod and Cloudflare records in sync with the public IP.",
    )
    parser.add_argument("-c", "--config", default="config.toml", help="path to the configuration file")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument("--log-dir", default="log", help="directory for ddns.log (default: log)")
    parser.add_argument("--once", action="store_true", help="run a single check cycle and exit")
    parser.add_argument("--tg-bot-token", help="Telegram bot token for change notifications")
    parser.add_argument("--tg-chat-id", help="Telegram chat ID receiving notifications")
    parser.add_argument("--tg-http-proxy", help="HTTP proxy used for Telegram only")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


async def run(config: AppConfig, args: argparse.Namespace) -> None:
    """
    Runs the DDNS loop (or a single cycle with --once) until stopped.

    Args:
        config: The loaded configuration.
        args: Parsed command-line flags.
    """
    async with contextlib.AsyncExitStack() as stack:
        http_client = await stack.enter_async_context(create_http_client())

        notify_service = None
        if args.tg_bot_token and args.tg_chat_id:
            tg_client = await stack.enter_async_context(create_telegram_http_client(args.tg_http_proxy))
            notify_service = NotifyService(tg_client, args.tg_bot_token, args.tg_chat_id)
            logger.info("Telegram notifications enabled for chat %s", args.tg_chat_id)

        dns_service = build_dns_service(config, http_client, notify_service)

        if args.once:
            await dns_service.run_check_cycle(config.targets)
            return

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                # Windows event loops have no add_signal_handler; Ctrl+C still
                # raises KeyboardInterrupt in main().
                pass

        scheduler = create_scheduler(dns_service, config.targets, config.sleep_secs)
        observer = create_observer(args.config)
        scheduler.start()
        observer.start()
        logger.info("DDNS loop started for %d domain(s).", len(config.targets))
        try:
            await stop.wait()
        finally:
            logger.info("Shutting down.")
            scheduler.shutdown(wait=False)
            observer.stop()
            observer.join(timeout=5)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_dir, args.verbose)
    logger.info("ddns %s starting", APP_VERSION)
    if args.verbose:
        logger.debug("Verbose logging enabled")

    try:
        config = load_config(args.config)
    except ConfigLoadError as exc:
        logger.error("%s", exc)
        return 2

    try:
        asyncio.run(run(config, args))
    except ConfigLoadError as exc:
        logger.error("%s", exc)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
