"""Entry point for the stock trading signal bot.

Wires all components together and serves the FastAPI app with uvicorn.
The scheduler, background batch runs and HTTP handlers share a single
asyncio event loop; startup and shutdown happen in the FastAPI lifespan.

Component wiring order (in _build_components):
1. YahooQuoteSource (market data)
2. GeminiSignalInference (signal generation)
3. TelegramSink + MessageFormatter (delivery)
4. SignalOrchestrator (single-symbol and batch pipelines)
5. CooldownCache (per-symbol spam guard)
6. CommandDispatcher (inbound chat commands)
7. TriggerScheduler (daily summary runs)
"""

import asyncio
import sys
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from signalbot.api.app import create_app
from signalbot.background import BackgroundTasks
from signalbot.commands.dispatcher import CommandDispatcher
from signalbot.config import AppSettings
from signalbot.exceptions import ConfigurationError, DeliveryError
from signalbot.inference.gemini_client import GeminiSignalInference
from signalbot.logging import get_logger, setup_logging
from signalbot.market_data.yahoo_client import YahooQuoteSource
from signalbot.models import normalize_symbol
from signalbot.notify.formatting import MessageFormatter
from signalbot.notify.telegram_client import TelegramSink
from signalbot.scheduler.scheduler import TriggerScheduler, resolve_timezone
from signalbot.signals.cooldown import CooldownCache
from signalbot.signals.orchestrator import SignalOrchestrator


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all bot components from settings.

    Args:
        settings: Application-wide settings.

    Returns:
        Dict mapping component names to instances.
    """
    logger = get_logger("signalbot.main")

    quote_source = YahooQuoteSource(settings.quote)
    inference = GeminiSignalInference(settings.gemini, interval=settings.quote.interval)
    telegram = TelegramSink(settings.telegram)

    display_tz, _ = resolve_timezone(settings.schedule.timezone)
    formatter = MessageFormatter(display_tz)

    symbols = [
        normalize_symbol(symbol, settings.quote.market_suffix)
        for symbol in settings.signal.symbols
    ]
    tasks = BackgroundTasks()

    orchestrator = SignalOrchestrator(
        quote_source=quote_source,
        inference=inference,
        sink=telegram,
        formatter=formatter,
        settings=settings.signal,
        symbols=symbols,
        tasks=tasks,
    )

    cooldown = CooldownCache(cooldown_seconds=settings.signal.cooldown_minutes * 60)

    dispatcher = CommandDispatcher(
        orchestrator=orchestrator,
        sink=telegram,
        formatter=formatter,
        cooldown=cooldown,
        market_suffix=settings.quote.market_suffix,
        tasks=tasks,
    )

    scheduler = TriggerScheduler(orchestrator, settings.schedule)

    logger.info(
        "components_built",
        symbols=len(symbols),
        cooldown_minutes=settings.signal.cooldown_minutes,
        schedule_times=settings.schedule.times,
    )

    return {
        "quote_source": quote_source,
        "inference": inference,
        "telegram": telegram,
        "formatter": formatter,
        "orchestrator": orchestrator,
        "cooldown": cooldown,
        "dispatcher": dispatcher,
        "scheduler": scheduler,
        "tasks": tasks,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores components on app.state, starts the scheduler and,
    in production, registers the Telegram webhook.

    On shutdown: stops the scheduler and closes HTTP clients. Batch runs
    still in flight are abandoned.
    """
    logger = get_logger("signalbot.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    app.state.orchestrator = components["orchestrator"]
    app.state.dispatcher = components["dispatcher"]
    app.state.scheduler = components["scheduler"]
    app.state.telegram = components["telegram"]

    if settings.schedule.times:
        await components["scheduler"].start()
    else:
        logger.info("scheduler_disabled", reason="no SCHEDULE_TIMES configured")

    if settings.server.is_production and settings.telegram.webhook_url:
        try:
            await components["telegram"].setup_webhook(settings.telegram.webhook_url)
        except DeliveryError as e:
            logger.error("webhook_setup_failed", error=str(e))

    logger.info(
        "lifespan_started",
        environment=settings.server.environment,
        port=settings.server.port,
    )

    yield

    await components["scheduler"].stop()

    pending = len(components["tasks"])
    if pending:
        logger.warning("abandoning_background_tasks", count=pending)

    for name in ("quote_source", "inference", "telegram"):
        try:
            await components[name].close()
        except Exception as e:
            logger.error("client_close_failed", client=name, error=str(e))

    logger.info("signal_bot_stopped")


async def run() -> None:
    """Run the signal bot HTTP server until shutdown."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("signalbot.main")

    # 3. Required credentials are fatal before serving
    try:
        settings.validate_credentials()
    except ConfigurationError as e:
        logger.error("configuration_invalid", error=str(e))
        sys.exit(1)

    # 4. Build all components
    components = _build_components(settings)

    app = create_app(lifespan=lifespan)
    app.state.settings = settings
    app.state.components = components

    logger.info(
        "starting_server",
        host=settings.server.host,
        port=settings.server.port,
        environment=settings.server.environment,
    )

    config = uvicorn.Config(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_level="warning",  # Suppress uvicorn access logs
        timeout_graceful_shutdown=settings.server.shutdown_timeout,
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
