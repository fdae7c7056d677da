"""
Command line entry point

    transfer-pacer [--once] [--log-level LEVEL] [--log-file PATH]

Exit codes: 0 clean stop, 1 fatal error, 2 configuration error.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv
from loguru import logger

from .chain_client import ChainClient, JsonRpcChainClient
from .config import PacerSettings
from .errors import ConfigurationError
from .range_sampler import RandomRangeSampler
from .scheduler import DailyScheduler, SchedulerCancelled
from .telemetry import DashboardState, LoguruTelemetryConsumer, TelemetrySink
from .transfer_executor import TransferExecutor
from .transfer_history import TransferHistoryDB


EXIT_OK = 0
EXIT_FATAL = 1
EXIT_CONFIG = 2


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    level = level.upper()
    try:
        logger.level(level)
    except ValueError:
        raise ConfigurationError(f"Unknown log level: {level}") from None

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(log_file, level="DEBUG", rotation="10 MB", retention=5, enqueue=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="transfer-pacer",
        description="Paced daily value transfers with balance guard",
    )
    parser.add_argument("--once", action="store_true", help="run a single trading phase and exit")
    parser.add_argument("--log-level", default=None, type=str.upper, help="override LOG_LEVEL")
    parser.add_argument("--log-file", default=None, help="also write DEBUG logs to this file")
    parser.add_argument("--env-file", default=None, help="load variables from this .env file")
    return parser


async def graceful_shutdown(
    client: ChainClient,
    telemetry: TelemetrySink,
    consumer_task: Optional[asyncio.Task] = None,
    history: Optional[TransferHistoryDB] = None,
    timeout: float = 10.0
):
    """
    Release resources after the scheduler exits

    1. Close the chain client session
    2. Signal end of stream and let the log consumer drain
    3. Close the history database
    """
    logger.info("Starting graceful shutdown...")

    try:
        await asyncio.wait_for(client.close(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Client close timed out after {timeout}s")

    telemetry.close()
    if consumer_task is not None:
        try:
            await asyncio.wait_for(consumer_task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Telemetry consumer did not drain in time, cancelling")
            consumer_task.cancel()

    if history is not None:
        history.close()

    if telemetry.dropped:
        logger.warning(f"{telemetry.dropped} telemetry events were dropped")

    logger.info("✓ Graceful shutdown complete")


def _install_signal_handlers(scheduler: DailyScheduler):
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.stop)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(scheduler.stop))


async def run(settings: PacerSettings, once: bool = False) -> int:
    client = JsonRpcChainClient(
        settings.rpc_url,
        settings.private_key,
        confirmation_timeout=settings.confirmation_timeout,
    )
    telemetry = TelemetrySink()
    dashboard = DashboardState()
    telemetry.add_listener(dashboard.apply)
    consumer = LoguruTelemetryConsumer(telemetry.subscribe())
    consumer_task = asyncio.create_task(consumer.run())
    history = TransferHistoryDB(settings.history_db) if settings.history_db else None

    account = client.address
    scheduler = DailyScheduler(
        executor=TransferExecutor(client),
        sampler=RandomRangeSampler(),
        telemetry=telemetry,
        account=account,
        destination=settings.resolve_destination(account),
        quota_range=settings.quota_range,
        delay_range=settings.delay_range,
        amount_range=settings.amount_range,
        history=history,
    )
    _install_signal_handlers(scheduler)

    try:
        await scheduler.prepare()
        logger.info(dashboard.header())

        if once:
            try:
                await scheduler.run_cycle(rest=False)
            except SchedulerCancelled:
                logger.info("Stopped before the trading phase completed")
        else:
            await scheduler.run_forever()

        if history is not None:
            logger.info(f"History: {history.get_statistics()}")
        return EXIT_OK

    except Exception as e:
        logger.exception(f"❌ Fatal error: {e}")
        return EXIT_FATAL

    finally:
        await graceful_shutdown(client, telemetry, consumer_task, history)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv(args.env_file)
    try:
        configure_logging(args.log_level or "INFO", args.log_file)
        settings = PacerSettings.from_env()
        if args.log_level is None and settings.log_level != "INFO":
            configure_logging(settings.log_level, args.log_file)
    except ConfigurationError as e:
        logger.error(f"✗ Configuration error: {e}")
        return EXIT_CONFIG

    settings.log_summary()

    try:
        return asyncio.run(run(settings, once=args.once))
    except ConfigurationError as e:
        logger.error(f"✗ Configuration error: {e}")
        return EXIT_CONFIG


if __name__ == "__main__":
    sys.exit(main())
