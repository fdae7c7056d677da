"""
Telemetry Sink

Outbound event stream observed by a dashboard or logger. The scheduler only
emits; it never renders and never waits on a consumer.

Events:
- LogLine: text with timestamp and level
- HourlyTick: updated count for one hour-of-day bucket
- BalanceSnapshot: address, balance, network info and destination

Also owns the per-hour counters (reset when the UTC day changes) and the
DashboardState model a renderer draws from.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Deque, List, Optional, Union

from loguru import logger

from .chain_client import NetworkInfo
from .units import format_ether


HOURS_PER_DAY = 24


@dataclass(frozen=True)
class LogLine:
    text: str
    timestamp: float
    level: str = "INFO"

    @property
    def utc_time(self) -> str:
        return datetime.fromtimestamp(self.timestamp, timezone.utc).strftime("%Y-%m-%d %H:%M:%SZ")


@dataclass(frozen=True)
class HourlyTick:
    hour_index: int
    count: int
    day: Optional[date] = None


@dataclass(frozen=True)
class BalanceSnapshot:
    address: str
    balance: int
    network: NetworkInfo
    timestamp: float
    destination: Optional[str] = None


TelemetryEvent = Union[LogLine, HourlyTick, BalanceSnapshot]


def local_hour(timestamp: float) -> int:
    """Local hour-of-day for a unix timestamp"""
    return datetime.fromtimestamp(timestamp).hour


def utc_day(timestamp: float):
    return datetime.fromtimestamp(timestamp, timezone.utc).date()


class HourlyCounters:
    """
    Successful transfers per hour-of-day

    24 buckets keyed by local hour. All buckets are cleared the first time
    an increment lands on a new UTC calendar day.
    """

    def __init__(self):
        self.counts: List[int] = [0] * HOURS_PER_DAY
        self.day = None

    def increment(self, timestamp: float) -> HourlyTick:
        day = utc_day(timestamp)
        if self.day is not None and day != self.day:
            logger.debug(f"New UTC day {day}, resetting hourly counters")
            self.reset()
        self.day = day

        hour = local_hour(timestamp)
        self.counts[hour] += 1
        return HourlyTick(hour_index=hour, count=self.counts[hour], day=day)

    def reset(self):
        self.counts = [0] * HOURS_PER_DAY

    @property
    def total(self) -> int:
        return sum(self.counts)


Listener = Callable[[TelemetryEvent], None]


class TelemetrySink:
    """
    Fire-and-forget fan-out of telemetry events

    Subscribers get a bounded asyncio.Queue fed with put_nowait; when a
    queue is full the event is dropped for that subscriber and counted.
    Listeners are plain callables invoked inline; one that raises is logged
    and skipped.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.counters = HourlyCounters()
        self.dropped = 0
        self._queues: List[asyncio.Queue] = []
        self._listeners: List[Listener] = []

    def subscribe(self, maxsize: int = 1000) -> asyncio.Queue:
        queue = asyncio.Queue(maxsize=maxsize)
        self._queues.append(queue)
        return queue

    def add_listener(self, listener: Listener):
        self._listeners.append(listener)

    def emit(self, event: TelemetryEvent):
        for queue in self._queues:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                self.dropped += 1

        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Telemetry listener {listener!r} failed: {e}")

    def log(self, text: str, level: str = "INFO") -> LogLine:
        event = LogLine(text=text, timestamp=self.clock(), level=level)
        self.emit(event)
        return event

    def record_sent(self) -> HourlyTick:
        """Count a confirmed transfer in the current hour bucket"""
        tick = self.counters.increment(self.clock())
        self.emit(tick)
        return tick

    def balance_snapshot(
        self,
        address: str,
        balance: int,
        network: NetworkInfo,
        destination: Optional[str] = None
    ) -> BalanceSnapshot:
        event = BalanceSnapshot(
            address=address,
            balance=balance,
            network=network,
            timestamp=self.clock(),
            destination=destination,
        )
        self.emit(event)
        return event

    def close(self):
        """Signal end of stream to every subscriber"""
        for queue in self._queues:
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                # consumer is behind; make room for the sentinel
                queue.get_nowait()
                queue.put_nowait(None)


@dataclass
class DashboardState:
    """What a terminal dashboard would render"""
    max_recent: int = 10
    recent_logs: Deque[LogLine] = field(default_factory=deque)
    hourly_counts: List[int] = field(default_factory=lambda: [0] * HOURS_PER_DAY)
    counts_day: Optional[date] = None
    balance: Optional[BalanceSnapshot] = None
    last_log_at: Optional[str] = None
    fatal_error: Optional[str] = None

    def apply(self, event: TelemetryEvent):
        if isinstance(event, LogLine):
            self.recent_logs.appendleft(event)
            while len(self.recent_logs) > self.max_recent:
                self.recent_logs.pop()
            self.last_log_at = event.utc_time
            if event.level == "CRITICAL":
                self.fatal_error = event.text

        elif isinstance(event, HourlyTick):
            if event.day is not None and event.day != self.counts_day:
                self.hourly_counts = [0] * HOURS_PER_DAY
                self.counts_day = event.day
            self.hourly_counts[event.hour_index] = event.count

        elif isinstance(event, BalanceSnapshot):
            self.balance = event

    def header(self) -> str:
        if self.balance is None:
            return "Initializing..."
        header = (
            f"Wallet: {self.balance.address} | "
            f"Chain: {self.balance.network} | "
            f"Balance: {format_ether(self.balance.balance)}"
        )
        if self.balance.destination:
            header += f" | Dest: {self.balance.destination}"
        return header


class LoguruTelemetryConsumer:
    """Drains a subscriber queue into loguru"""

    def __init__(self, queue: asyncio.Queue):
        self.queue = queue
        self.consumed = 0

    def handle(self, event: TelemetryEvent):
        if isinstance(event, LogLine):
            logger.log(event.level, event.text)
        elif isinstance(event, HourlyTick):
            logger.debug(f"Hour {event.hour_index:02d}h: {event.count} tx")
        elif isinstance(event, BalanceSnapshot):
            logger.info(
                f"Wallet {event.address} on {event.network}: balance {format_ether(event.balance)}"
            )
        self.consumed += 1

    async def run(self):
        while True:
            event = await self.queue.get()
            if event is None:
                break
            self.handle(event)
