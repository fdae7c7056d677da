"""
Unit Tests for telemetry: sink fan-out, hourly counters, dashboard state
"""

import asyncio

import pytest

from tests.conftest import DESTINATION, FIXED_NOW, SENDER
from transfer_pacer.chain_client import NetworkInfo
from transfer_pacer.scheduler import SECONDS_PER_DAY
from transfer_pacer.telemetry import (
    BalanceSnapshot,
    DashboardState,
    HourlyCounters,
    HourlyTick,
    LogLine,
    LoguruTelemetryConsumer,
    TelemetrySink,
    local_hour,
)
from transfer_pacer.units import parse_ether


SEPOLIA = NetworkInfo(name="sepolia", chain_id=11155111)


class TestHourlyCounters:

    def test_increment_current_hour(self):
        counters = HourlyCounters()
        tick = counters.increment(FIXED_NOW)
        counters.increment(FIXED_NOW + 1)

        hour = local_hour(FIXED_NOW)
        assert tick.hour_index == hour
        assert counters.counts[hour] == 2
        assert len(counters.counts) == 24

    def test_reset_on_new_utc_day(self):
        counters = HourlyCounters()
        counters.increment(FIXED_NOW)
        counters.increment(FIXED_NOW)

        tick = counters.increment(FIXED_NOW + SECONDS_PER_DAY)

        assert tick.count == 1
        assert counters.total == 1

    def test_same_day_accumulates_across_hours(self):
        midnight = FIXED_NOW - FIXED_NOW % SECONDS_PER_DAY
        counters = HourlyCounters()
        counters.increment(midnight + 60)
        counters.increment(midnight + 5 * 3600)
        counters.increment(midnight + 23 * 3600)
        assert counters.total == 3


class TestTelemetrySink:

    def test_log_uses_clock(self):
        sink = TelemetrySink(clock=lambda: FIXED_NOW)
        line = sink.log("hello", level="WARNING")
        assert line == LogLine(text="hello", timestamp=FIXED_NOW, level="WARNING")
        assert line.utc_time == "2023-11-14 22:13:20Z"

    @pytest.mark.asyncio
    async def test_subscribers_receive_events(self):
        sink = TelemetrySink(clock=lambda: FIXED_NOW)
        first, second = sink.subscribe(), sink.subscribe()

        sink.log("a")
        sink.record_sent()

        for queue in (first, second):
            assert isinstance(queue.get_nowait(), LogLine)
            assert isinstance(queue.get_nowait(), HourlyTick)

    @pytest.mark.asyncio
    async def test_full_queue_drops_without_blocking(self):
        sink = TelemetrySink(clock=lambda: FIXED_NOW)
        queue = sink.subscribe(maxsize=2)

        for i in range(5):
            sink.log(f"line {i}")

        assert queue.qsize() == 2
        assert sink.dropped == 3

    def test_failing_listener_is_isolated(self, recorder):
        sink = TelemetrySink(clock=lambda: FIXED_NOW)

        def broken(event):
            raise RuntimeError("renderer crashed")

        sink.add_listener(broken)
        sink.add_listener(recorder)
        sink.log("still delivered")

        assert recorder.texts() == ["still delivered"]

    @pytest.mark.asyncio
    async def test_close_sends_sentinel_even_when_full(self):
        sink = TelemetrySink(clock=lambda: FIXED_NOW)
        queue = sink.subscribe(maxsize=1)
        sink.log("fills the queue")

        sink.close()

        assert queue.get_nowait() is None


class TestDashboardState:

    def test_keeps_ten_newest_logs(self):
        state = DashboardState()
        for i in range(15):
            state.apply(LogLine(text=f"line {i}", timestamp=FIXED_NOW + i))

        assert len(state.recent_logs) == 10
        assert state.recent_logs[0].text == "line 14"
        assert state.recent_logs[-1].text == "line 5"
        assert state.last_log_at == "2023-11-14 22:13:34Z"

    def test_hourly_ticks_and_day_reset(self):
        counters = HourlyCounters()
        state = DashboardState()

        state.apply(counters.increment(FIXED_NOW))
        state.apply(counters.increment(FIXED_NOW))
        assert sum(state.hourly_counts) == 2

        state.apply(counters.increment(FIXED_NOW + SECONDS_PER_DAY))
        assert sum(state.hourly_counts) == 1

    def test_balance_header(self):
        state = DashboardState()
        assert state.header() == "Initializing..."

        state.apply(BalanceSnapshot(address=SENDER, balance=parse_ether("0.5"), network=SEPOLIA, timestamp=FIXED_NOW))

        assert state.header() == f"Wallet: {SENDER} | Chain: sepolia (11155111) | Balance: 0.5"

    def test_header_shows_destination(self):
        sink = TelemetrySink(clock=lambda: FIXED_NOW)
        state = DashboardState()
        sink.add_listener(state.apply)

        sink.balance_snapshot(SENDER, parse_ether("2"), SEPOLIA, DESTINATION)

        assert state.balance.destination == DESTINATION
        assert state.header() == f"Wallet: {SENDER} | Chain: sepolia (11155111) | Balance: 2 | Dest: {DESTINATION}"

    def test_fatal_error_captured(self):
        state = DashboardState()
        state.apply(LogLine(text="Fatal error during trading: boom", timestamp=FIXED_NOW, level="CRITICAL"))
        assert state.fatal_error == "Fatal error during trading: boom"


class TestLoguruConsumer:

    @pytest.mark.asyncio
    async def test_drains_until_sentinel(self):
        sink = TelemetrySink(clock=lambda: FIXED_NOW)
        consumer = LoguruTelemetryConsumer(sink.subscribe())

        sink.log("one")
        sink.record_sent()
        sink.balance_snapshot(SENDER, parse_ether("1"), SEPOLIA)
        sink.close()

        await asyncio.wait_for(consumer.run(), timeout=1)

        assert consumer.consumed == 3
