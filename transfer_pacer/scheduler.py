"""
Daily Scheduler

Paces transfers across UTC days. Each cycle has two phases:

1. TRADING - sample a quota, then for each slot sample an amount, run a
   guarded transfer, emit telemetry and (except after the last slot) sleep
   a random pacing delay.
2. RESTING - sleep until the next UTC midnight, then start a new cycle.

Every suspension point checks a cancellation event so stop() ends the loop
between operations instead of mid-transfer.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from loguru import logger

from .errors import ClientError
from .range_sampler import AmountRange, DelayRange, QuotaRange, RandomRangeSampler
from .telemetry import BalanceSnapshot, TelemetrySink
from .transfer_executor import Failed, Sent, Skipped, TransferExecutor, TransferOutcome
from .transfer_history import TransferHistoryDB
from .units import format_ether


SECONDS_PER_DAY = 24 * 60 * 60


class Phase(Enum):
    TRADING = "trading"
    RESTING = "resting"


class SchedulerCancelled(Exception):
    """Raised at a suspension point once stop() has been requested"""


@dataclass
class DayPlan:
    """Quota and progress for the current day cycle"""
    quota: int
    attempted: int = 0

    @property
    def remaining(self) -> int:
        return self.quota - self.attempted

    @property
    def exhausted(self) -> bool:
        return self.attempted >= self.quota


def seconds_until_next_utc_day(now_unix: float) -> int:
    """Seconds from now_unix to the next UTC midnight (a full day when exactly at midnight)"""
    return SECONDS_PER_DAY - (int(now_unix) % SECONDS_PER_DAY)


Sleeper = Callable[[float], Awaitable[None]]


class DailyScheduler:
    """
    Quota-driven transfer loop

    Transfers run strictly one after another: the executor call (including
    confirmation) completes before the next slot starts.
    """

    def __init__(
        self,
        executor: TransferExecutor,
        sampler: RandomRangeSampler,
        telemetry: TelemetrySink,
        account: str,
        destination: str,
        quota_range: QuotaRange,
        delay_range: DelayRange,
        amount_range: AmountRange,
        clock: Callable[[], float] = time.time,
        sleep: Optional[Sleeper] = None,
        history: Optional[TransferHistoryDB] = None,
    ):
        """
        Initialize scheduler

        Args:
            executor: Guarded transfer executor
            sampler: Random range sampler
            telemetry: Event sink
            account: Sender address
            destination: Recipient address
            quota_range: Transfers per day
            delay_range: Pacing delay seconds
            amount_range: Amount bounds in wei
            clock: Unix time source
            sleep: Optional sleeper override; cancellation is still checked after it
            history: Optional SQLite outcome ledger
        """
        self.executor = executor
        self.sampler = sampler
        self.telemetry = telemetry
        self.account = account
        self.destination = destination
        self.quota_range = quota_range
        self.delay_range = delay_range
        self.amount_range = amount_range
        self.clock = clock
        self.history = history

        self._sleeper = sleep
        self._stop_event = asyncio.Event()

        self.phase = Phase.TRADING
        self.plan: Optional[DayPlan] = None
        self.cycles_completed = 0

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def stop(self):
        """Request the loop to end at the next suspension point"""
        if not self._stop_event.is_set():
            logger.info("Stop requested, finishing current operation...")
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def _check_cancelled(self):
        if self._stop_event.is_set():
            raise SchedulerCancelled(f"Cancelled during {self.phase.value}")

    async def _sleep(self, seconds: float):
        self._check_cancelled()
        if self._sleeper is not None:
            await self._sleeper(seconds)
        else:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            except asyncio.TimeoutError:
                pass
        self._check_cancelled()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def prepare(self) -> BalanceSnapshot:
        """
        Fetch network info and the starting balance

        Errors propagate: a client that cannot answer here is a fatal
        startup failure.
        """
        client = self.executor.client
        network = await client.get_network_info()
        balance = await client.get_balance(self.account)

        logger.info(f"✓ Connected to {network}")
        logger.info(f"  Wallet: {self.account}")
        logger.info(f"  Destination: {self.destination}")
        return self.telemetry.balance_snapshot(self.account, balance, network, self.destination)

    async def _refresh_balance(self):
        client = self.executor.client
        try:
            network = await client.get_network_info()
            balance = await client.get_balance(self.account)
        except ClientError as e:
            self.telemetry.log(f"Balance refresh failed: {e}", level="WARNING")
            return
        self.telemetry.balance_snapshot(self.account, balance, network, self.destination)

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def run_trading(self) -> DayPlan:
        """Run every slot of a freshly sampled quota"""
        self.phase = Phase.TRADING
        quota = self.sampler.sample_int(self.quota_range.minimum, self.quota_range.maximum)
        self.plan = DayPlan(quota=quota)
        self.telemetry.log(f"Starting new day with target {quota} tx")

        while not self.plan.exhausted:
            self._check_cancelled()

            amount = self.sampler.sample_wide_amount(self.amount_range.minimum, self.amount_range.maximum)
            outcome = await self.executor.execute(self.account, self.destination, amount)
            self.plan.attempted += 1
            self._report(amount, outcome)

            if not self.plan.exhausted:
                delay = self.sampler.sample_int(self.delay_range.minimum, self.delay_range.maximum)
                self.telemetry.log(f"Waiting {delay} sec before next tx...")
                await self._sleep(delay)

        return self.plan

    async def run_resting(self) -> int:
        """Sleep until the next UTC day boundary"""
        self.phase = Phase.RESTING
        seconds = seconds_until_next_utc_day(self.clock())
        self.telemetry.log(f"Daily target reached. Sleeping {seconds} sec until next UTC day...")
        await self._sleep(seconds)
        return seconds

    def _report(self, amount: int, outcome: TransferOutcome):
        """Exactly one outcome line per slot; Sent also bumps the hourly counter"""
        slot = f"[{self.plan.attempted}/{self.plan.quota}]"

        if isinstance(outcome, Sent):
            self.telemetry.log(f"{slot} Sent {format_ether(amount)} | Tx: {outcome.pending_id}")
            self.telemetry.record_sent()
        elif isinstance(outcome, Skipped):
            self.telemetry.log(
                f"{slot} Skipped: {outcome.reason}. Bal={format_ether(outcome.balance)} "
                f"short by {format_ether(outcome.shortfall)}",
                level="WARNING",
            )
        elif isinstance(outcome, Failed):
            self.telemetry.log(f"{slot} Failed: {outcome.error}", level="ERROR")

        if self.history is not None:
            self.history.record_outcome(self.account, self.destination, amount, outcome)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run_cycle(self, rest: bool = True) -> DayPlan:
        """
        One day cycle: trading, then (optionally) resting

        Raises:
            SchedulerCancelled: stop() was requested
            Exception: anything unexpected, after reporting it with the phase
        """
        try:
            plan = await self.run_trading()
            if rest:
                await self.run_resting()
                await self._refresh_balance()
        except SchedulerCancelled:
            raise
        except Exception as e:
            self.telemetry.log(f"Fatal error during {self.phase.value}: {type(e).__name__}: {e}", level="CRITICAL")
            raise

        self.cycles_completed += 1
        return plan

    async def run_forever(self):
        """Run day cycles until stop() is called"""
        try:
            while True:
                await self.run_cycle()
        except SchedulerCancelled as e:
            logger.info(f"✓ Scheduler stopped ({e})")
            self.telemetry.log("Scheduler stopped")
