"""
Shared fixtures: fake chain client, fixed clock, recording sleeper
"""

import asyncio
from typing import List, Optional, Tuple

import pytest

from transfer_pacer.chain_client import ChainClient, NetworkInfo
from transfer_pacer.errors import ClientError
from transfer_pacer.telemetry import LogLine, TelemetrySink
from transfer_pacer.units import WEI_PER_ETHER


SENDER = "0x" + "11" * 20
DESTINATION = "0x" + "22" * 20

# 2023-11-14 22:13:20 UTC
FIXED_NOW = 1_700_000_000.0


class FakeChainClient(ChainClient):
    """In-memory chain client that records every call"""

    def __init__(self, balance: int = 100 * WEI_PER_ETHER, address: str = SENDER, send_delay: float = 0):
        self._address = address
        self.balance = balance
        self.network = NetworkInfo(name="sepolia", chain_id=11155111)
        self.send_delay = send_delay

        self.balance_calls = 0
        self.sent: List[Tuple[str, int]] = []
        self.confirmed: List[str] = []

        self.fail_balance: Optional[Exception] = None
        self.fail_send: Optional[Exception] = None
        self.fail_confirm: Optional[Exception] = None

        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @property
    def address(self) -> str:
        return self._address

    async def get_balance(self, address: str) -> int:
        self.balance_calls += 1
        if self.fail_balance:
            raise self.fail_balance
        return self.balance

    async def get_network_info(self) -> NetworkInfo:
        return self.network

    async def send_transfer(self, destination: str, amount: int) -> str:
        if self.fail_send:
            raise self.fail_send
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        self.sent.append((destination, amount))
        self.balance -= amount
        return f"0x{len(self.sent):064x}"

    async def await_confirmation(self, pending_id: str) -> str:
        try:
            if self.fail_confirm:
                raise self.fail_confirm
            self.confirmed.append(pending_id)
            return "0xb" + pending_id[-8:]
        finally:
            self.in_flight = max(0, self.in_flight - 1)

    async def close(self):
        self.closed = True


class RecordingSleeper:
    """Sleeper stand-in that records requested durations without waiting"""

    def __init__(self, on_sleep=None):
        self.calls: List[float] = []
        self.on_sleep = on_sleep

    async def __call__(self, seconds: float):
        self.calls.append(seconds)
        if self.on_sleep:
            self.on_sleep(seconds)


class EventRecorder:
    """Telemetry listener collecting every event"""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def lines(self, level: Optional[str] = None) -> List[LogLine]:
        return [e for e in self.events if isinstance(e, LogLine) and (level is None or e.level == level)]

    def texts(self) -> List[str]:
        return [e.text for e in self.lines()]


@pytest.fixture
def client():
    return FakeChainClient()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def sleeper():
    return RecordingSleeper()


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def telemetry(clock, recorder):
    sink = TelemetrySink(clock=clock)
    sink.add_listener(recorder)
    return sink


@pytest.fixture
def client_error():
    return ClientError("connection refused", method="eth_getBalance")
