"""
lodge-bot entry point
=====================

Usage:
    python -m lodgebot                          # settings from env / .env / config/config.json
    python -m lodgebot --config config.json     # explicit JSON config
    python -m lodgebot --session-dir /var/lib/lodgebot/session --log-level DEBUG

The transport factory and message handler are wired through settings:
    WHATSAPP_TRANSPORT_FACTORY=mybridge.transport:create_transport
    WHATSAPP_MESSAGE_HANDLER=mybot.flows:process_message

Exit codes:
    0  stopped by signal
    1  startup failure (configuration or session storage)
    2  reconnect attempts exhausted, restart required
"""

import argparse
import asyncio
import signal
import sys
from typing import Any, Dict, List, Optional

from lodgebot.core.event_bus import EventBus
from lodgebot.core.exceptions import ConnectionManagerError
from lodgebot.core.logger import configure_logging, get_logger
from lodgebot.core.utils import import_from_path
from lodgebot.domain.interfaces.transport import IWhatsAppTransport
from lodgebot.infrastructure.config.config_loader import get_settings_from_working_directory
from lodgebot.infrastructure.config.settings import AppSettings, LogLevel
from lodgebot.infrastructure.whatsapp.connection_manager import ConnectionManager

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1
EXIT_EXHAUSTED = 2


async def log_message_handler(session: IWhatsAppTransport, sender: str, text: str, raw_message: Dict[str, Any]) -> None:
    """Fallback callback when no handler is configured: record the message and do nothing else"""
    get_logger("lodgebot.messages").info("whatsapp.message_received", {
        "sender": sender,
        "text": text,
        "message_type": next(iter(raw_message), "")
    })


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lodgebot", description="WhatsApp reservation bot connection")
    parser.add_argument("--config", help="Path to a JSON config file")
    parser.add_argument("--session-dir", help="Override the credential directory")
    parser.add_argument("--log-level", choices=[level.value for level in LogLevel], help="Override log level")
    return parser


def load_settings(args: argparse.Namespace) -> AppSettings:
    settings = get_settings_from_working_directory(args.config)
    if args.session_dir:
        settings.whatsapp.session_dir = args.session_dir
    if args.log_level:
        settings.logging.level = LogLevel(args.log_level)
    return settings


async def run(settings: AppSettings) -> int:
    configure_logging(settings.logging)
    logger = get_logger("lodgebot.main")

    try:
        transport_factory = import_from_path(settings.whatsapp.transport_factory)
        handler = (import_from_path(settings.whatsapp.message_handler)
                   if settings.whatsapp.message_handler else log_message_handler)
    except ConnectionManagerError as e:
        logger.critical("main.wiring_failed", {"error": str(e)})
        return EXIT_STARTUP_FAILED

    event_bus = EventBus()
    manager = ConnectionManager(transport_factory, settings.whatsapp, event_bus=event_bus)

    stop_event = asyncio.Event()
    exit_code = EXIT_OK

    async def on_exhausted(data: Dict[str, Any]) -> None:
        nonlocal exit_code
        exit_code = EXIT_EXHAUSTED
        stop_event.set()

    await event_bus.subscribe("whatsapp.reconnect_exhausted", on_exhausted)
    _install_signal_handlers(stop_event)

    try:
        await manager.start(handler)
    except ConnectionManagerError as e:
        logger.critical("main.startup_failed", {"error": str(e)})
        await event_bus.shutdown()
        return EXIT_STARTUP_FAILED

    logger.info("main.running", {"app": settings.app_name, "version": settings.version})
    await stop_event.wait()

    await manager.stop()
    await event_bus.shutdown()
    logger.info("main.exit", {"exit_code": exit_code})
    return exit_code


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: fall back to KeyboardInterrupt handling in main()
            pass


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args)
    except (OSError, ValueError) as e:
        print(f"ERROR: cannot load configuration: {e}", file=sys.stderr)
        return EXIT_STARTUP_FAILED

    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
