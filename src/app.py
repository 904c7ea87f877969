"""Application entry point for the pulse notification relay."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

from art import text2art
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

import settings
from adapters.factory import build_adapters
from adapters.sqlite_storage import SQLiteStorage
from client import LOGIN_METHODS, authorize, build_client
from core.config import parse_router_config
from core.errors import InvalidConfiguration
from core.models import NOTIFICATION_TYPES, PRIORITIES
from core.router import NotificationRouter, build_registry
from core.scheduler import Ticker

NAME = "PULSE"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    # stderr keeps stdout clean for JSON results.
    print(text2art(NAME, font=FONT, space=1), file=sys.stderr)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    names = redact_cfg.get(
        "patterns",
        [
            "BOT_API",
            "API_HASH",
            "DISCORD_WEBHOOK_URL",
            "SLACK_WEBHOOK_URL",
            "SMTP_PASSWORD",
            "FEISHU_WEBHOOK_URL",
            "FEISHU_SECRET",
            "DINGTALK_WEBHOOK_URL",
            "DINGTALK_SECRET",
            "WECHAT_WORK_WEBHOOK_URL",
        ],
    )
    values = [os.getenv(name) for name in names]
    return sorted({value for value in values if value}, key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        # stdout carries command output (JSON results), so logs go to stderr.
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/pulse.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def build_router(with_adapters: bool = True) -> NotificationRouter:
    """Wire config, adapters, storage and the router together.

    Raises InvalidConfiguration for a bad config.json or missing secrets.
    """

    config = parse_router_config(settings.CONFIG)
    adapters = build_adapters(config, os.environ, build_client) if with_adapters else {}
    registry = build_registry(config, adapters)

    storage = SQLiteStorage(settings.DB_PATH)
    storage.init_db()

    router = NotificationRouter(config, registry, storage=storage)
    router.restore()
    LOGGER.info("%s channels registered, %s enabled", len(registry), len(registry.enabled_channels()))
    return router


def _parse_event(line: str) -> tuple[str, dict[str, Any]]:
    """One producer event per stdin line: JSON ``{"text": ..., ...options}`` or plain text."""

    try:
        event = json.loads(line)
    except json.JSONDecodeError:
        return line, {}
    if not isinstance(event, dict):
        return line, {}
    text = event.pop("text", None)
    message = event.pop("message", None)
    text = str(text or message or "")
    options = event.pop("options", None)
    if isinstance(options, dict):
        event.update(options)
    return text, event


async def _run_async(router: NotificationRouter) -> None:
    ticker = Ticker(router, router.tick_interval)
    ticker_task = asyncio.create_task(ticker.run())
    LOGGER.info("Listening for events on stdin (one JSON object per line)")

    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            text, options = _parse_event(line)
            result = await router.notify(text, options)
            print(json.dumps(result.to_dict(), ensure_ascii=False), flush=True)
    finally:
        # Kill switch: no new ticks, then flush held aggregation groups.
        ticker.stop()
        await ticker_task
        await router.shutdown()
        LOGGER.info("Relay stopped, %s notifications still queued", router.queue_size)


def _run() -> None:
    _print_banner()
    LOGGER.info("Starting pulse relay")
    router = build_router()
    try:
        asyncio.run(_run_async(router))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")


def _send(args: argparse.Namespace) -> None:
    options: dict[str, Any] = {}
    if args.type:
        options["type"] = args.type
    if args.priority:
        options["priority"] = args.priority
    if args.module:
        options["module"] = args.module
    if args.channel:
        options["channels"] = args.channel
    if args.keyword:
        options["keywords"] = args.keyword
    if args.subject:
        options["subject"] = args.subject

    router = build_router()

    async def _send_once() -> dict:
        result = await router.notify(args.text, options)
        # A one-shot process must not leave anything held in aggregation.
        await router.shutdown()
        return result.to_dict()

    print(json.dumps(asyncio.run(_send_once()), ensure_ascii=False, indent=2))


def _test() -> None:
    router = build_router()
    results = asyncio.run(router.test_all())

    table = Table(title="Channel self-test")
    table.add_column("channel")
    table.add_column("result")
    table.add_column("message")
    for name, result in results.items():
        ok = bool(result.get("success"))
        table.add_row(name, "[green]ok[/green]" if ok else "[red]failed[/red]", str(result.get("message", "")))
    Console().print(table)


def _feedback(args: argparse.Namespace) -> None:
    router = build_router(with_adapters=False)
    if not router.record_feedback(args.record_id, args.value):
        raise SystemExit(f"History record {args.record_id} not found")
    print(f"Recorded {args.value} feedback for record {args.record_id}")


def _status() -> None:
    from frontend.app import StatusPanelApp

    StatusPanelApp(build_router()).run()


def _login(args: argparse.Namespace) -> None:
    _print_banner()
    client = build_client()

    async def _run_login() -> None:
        await client.connect()
        try:
            if not await authorize(client, method=args.method):
                print("Session already authorized.")
        finally:
            await client.disconnect()

    asyncio.run(_run_login())


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(prog="pulse")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Relay JSON events from stdin until EOF")

    send_parser = subparsers.add_parser("send", help="Send a single notification")
    send_parser.add_argument("text")
    send_parser.add_argument("--type", choices=NOTIFICATION_TYPES)
    send_parser.add_argument("--priority", choices=PRIORITIES)
    send_parser.add_argument("--module")
    send_parser.add_argument("--channel", action="append", help="Explicit channel (repeatable)")
    send_parser.add_argument("--keyword", action="append", help="Keyword (repeatable)")
    send_parser.add_argument("--subject", help="Email subject")

    subparsers.add_parser("test", help="Send a test message on every channel")
    subparsers.add_parser("status", help="Launch the status panel")

    feedback_parser = subparsers.add_parser("feedback", help="Rate a past delivery")
    feedback_parser.add_argument("record_id", type=int)
    feedback_parser.add_argument("value", choices=("positive", "negative"))

    login_parser = subparsers.add_parser("login", help="Authorize the Telegram Saved Messages session")
    login_parser.add_argument("--method", choices=LOGIN_METHODS, default="qr")

    args = parser.parse_args(argv)
    _configure_logging()

    try:
        if args.command == "send":
            _send(args)
        elif args.command == "test":
            _test()
        elif args.command == "status":
            _status()
        elif args.command == "feedback":
            _feedback(args)
        elif args.command == "login":
            _login(args)
        else:
            _run()
    except InvalidConfiguration as exc:
        LOGGER.error("Invalid configuration: %s", exc)
        raise SystemExit(2) from exc


if __name__ == "__main__":
    main()
