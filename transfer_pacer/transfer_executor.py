"""
Transfer Executor

One guarded transfer per call:
1. Query balance
2. Balance guard check (denied -> Skipped, nothing submitted)
3. Submit transfer
4. Await confirmation
5. Sent on success, Failed on any ClientError

Outcomes are never retried automatically.
"""

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Union

from loguru import logger

from .balance_guard import BalanceGuard
from .chain_client import ChainClient
from .errors import ClientError


@dataclass(frozen=True)
class TransferRequest:
    """Immutable transfer request"""
    destination: str
    amount: int


@dataclass(frozen=True)
class Sent:
    """Transfer included on chain"""
    confirmation_id: str
    pending_id: Optional[str] = None
    kind: str = 'sent'


@dataclass(frozen=True)
class Skipped:
    """Transfer not attempted (expected, not an error)"""
    reason: str
    balance: int = 0
    shortfall: int = 0
    kind: str = 'skipped'


@dataclass(frozen=True)
class Failed:
    """Client-level failure while submitting or confirming"""
    error: str
    pending_id: Optional[str] = None
    kind: str = 'failed'


TransferOutcome = Union[Sent, Skipped, Failed]

INSUFFICIENT_BALANCE = "insufficient balance"


class TransferExecutor:
    """
    Guarded transfer execution against a chain client

    Calls for the same account are serialized with a per-account lock so a
    second transfer never sees the balance/nonce snapshot of one still in
    flight. Different accounts proceed in parallel.
    """

    def __init__(self, client: ChainClient, guard: Optional[BalanceGuard] = None):
        self.client = client
        self.guard = guard or BalanceGuard()
        self._account_locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, account: str) -> asyncio.Lock:
        key = account.lower()
        if key not in self._account_locks:
            self._account_locks[key] = asyncio.Lock()
        return self._account_locks[key]

    async def execute(self, account: str, destination: str, amount: int) -> TransferOutcome:
        """
        Run one guarded transfer

        Args:
            account: Sender address (balance is checked here)
            destination: Recipient address
            amount: Value in wei

        Returns:
            Sent, Skipped or Failed
        """
        request = TransferRequest(destination=destination, amount=amount)

        async with self._lock_for(account):
            return await self._execute(account, request)

    async def _execute(self, account: str, request: TransferRequest) -> TransferOutcome:
        try:
            balance = await self.client.get_balance(account)
        except ClientError as e:
            logger.error(f"✗ Balance query failed for {account}: {e}")
            return Failed(error=str(e))

        decision = self.guard.admit(balance, request.amount)
        if not decision:
            logger.info(f"Skipping transfer of {request.amount} wei: {INSUFFICIENT_BALANCE} (short {decision.shortfall} wei)")
            return Skipped(reason=INSUFFICIENT_BALANCE, balance=balance, shortfall=decision.shortfall)

        try:
            pending_id = await self.client.send_transfer(request.destination, request.amount)
        except ClientError as e:
            logger.error(f"✗ Transfer submission failed: {e}")
            return Failed(error=str(e))

        logger.info(f"Submitted {request.amount} wei to {request.destination[:10]}... (tx: {pending_id})")

        try:
            confirmation_id = await self.client.await_confirmation(pending_id)
        except ClientError as e:
            logger.error(f"✗ Transfer {pending_id} not confirmed: {e}")
            return Failed(error=str(e), pending_id=pending_id)

        logger.info(f"✓ Transfer confirmed: {pending_id}")
        return Sent(confirmation_id=confirmation_id, pending_id=pending_id)
