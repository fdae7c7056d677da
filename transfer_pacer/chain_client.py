"""
Chain Client

Contract the executor and scheduler depend on, plus a JSON-RPC
implementation for EVM networks:
- get_balance: account balance in wei
- get_network_info: network name and chain id
- send_transfer: sign and submit a value transfer, returns tx hash
- await_confirmation: poll for the receipt until block inclusion

Every failure surfaces as ClientError.
"""

import asyncio
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import aiohttp
from eth_account import Account
from eth_utils import is_address, to_checksum_address
from loguru import logger

from .errors import ClientError, ConfigurationError


@dataclass(frozen=True)
class NetworkInfo:
    """Network the client is connected to"""
    name: str
    chain_id: int

    def __str__(self):
        return f"{self.name} ({self.chain_id})"


class ChainClient(ABC):
    """Minimal chain access used by the pacer"""

    @property
    @abstractmethod
    def address(self) -> str:
        """Sender address"""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        ...

    @abstractmethod
    async def get_network_info(self) -> NetworkInfo:
        ...

    @abstractmethod
    async def send_transfer(self, destination: str, amount: int) -> str:
        ...

    @abstractmethod
    async def await_confirmation(self, pending_id: str) -> str:
        ...

    async def close(self):
        """Release network resources"""


def normalize_address(address: str) -> str:
    """Return the EIP-55 checksum form, raising ConfigurationError if malformed"""
    if not address or not is_address(address):
        raise ConfigurationError(f"Malformed address: {address!r}")
    return to_checksum_address(address)


class JsonRpcChainClient(ChainClient):
    """
    EVM JSON-RPC client with local signing

    Transactions are signed in-process with eth_account and submitted via
    eth_sendRawTransaction. EIP-1559 fees are used when the latest block
    reports a base fee, legacy gas pricing otherwise.
    """

    KNOWN_NETWORKS = {
        1: 'mainnet',
        5: 'goerli',
        17000: 'holesky',
        560048: 'hoodi',
        11155111: 'sepolia',
        84532: 'base-sepolia',
        421614: 'arbitrum-sepolia',
        11155420: 'optimism-sepolia',
    }

    REQUEST_TIMEOUT_SECONDS = 30
    RECEIPT_POLL_INTERVAL_SECONDS = 3
    CONFIRMATION_TIMEOUT_SECONDS = 300
    FEE_MULTIPLIER = 2  # maxFeePerGas = 2 * baseFee + tip

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        confirmation_timeout: float = CONFIRMATION_TIMEOUT_SECONDS,
        poll_interval: float = RECEIPT_POLL_INTERVAL_SECONDS,
    ):
        """
        Initialize client

        Args:
            rpc_url: JSON-RPC endpoint
            private_key: Hex-encoded sender key
            confirmation_timeout: Max seconds to wait for a receipt
            poll_interval: Seconds between receipt polls
        """
        if not rpc_url:
            raise ConfigurationError("RPC endpoint is required")
        if not private_key:
            raise ConfigurationError("Sender private key is required")

        try:
            self._account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid private key: {e}") from None

        self.rpc_url = rpc_url
        self.confirmation_timeout = confirmation_timeout
        self.poll_interval = poll_interval
        self._session: Optional[aiohttp.ClientSession] = None
        self._request_id = 0
        self._chain_id: Optional[int] = None

        logger.info(f"JSON-RPC client initialized for {self._account.address} via {rpc_url}")

    @property
    def address(self) -> str:
        return self._account.address

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=ssl.create_default_context())
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.REQUEST_TIMEOUT_SECONDS),
                connector=connector,
            )
        return self._session

    async def _call(self, method: str, params: List[Any]) -> Any:
        """Single JSON-RPC call, raising ClientError on any failure"""
        self._request_id += 1
        payload = {'jsonrpc': '2.0', 'id': self._request_id, 'method': method, 'params': params}

        session = await self._get_session()
        try:
            async with session.post(self.rpc_url, json=payload) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise ClientError(f"{method}: HTTP {resp.status}: {text[:200]}", method=method)
                body = await resp.json(content_type=None)
        except ClientError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ClientError(f"{method}: {type(e).__name__}: {e}", method=method) from e

        if not isinstance(body, dict):
            raise ClientError(f"{method}: malformed response", method=method)

        error = body.get('error')
        if error:
            message = error.get('message', error) if isinstance(error, dict) else error
            raise ClientError(f"{method}: {message}", method=method)

        return body.get('result')

    async def _call_int(self, method: str, params: List[Any]) -> int:
        result = await self._call(method, params)
        try:
            return int(result, 16)
        except (TypeError, ValueError):
            raise ClientError(f"{method}: unexpected result {result!r}", method=method) from None

    async def get_balance(self, address: str) -> int:
        return await self._call_int('eth_getBalance', [address, 'latest'])

    async def get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self._call_int('eth_chainId', [])
        return self._chain_id

    async def get_network_info(self) -> NetworkInfo:
        chain_id = await self.get_chain_id()
        return NetworkInfo(name=self.KNOWN_NETWORKS.get(chain_id, 'unknown'), chain_id=chain_id)

    async def _fee_fields(self) -> Dict[str, int]:
        latest = await self._call('eth_getBlockByNumber', ['latest', False])
        base_fee = latest.get('baseFeePerGas') if latest else None

        if base_fee is None:
            gas_price = await self._call_int('eth_gasPrice', [])
            return {'gasPrice': gas_price}

        tip = await self._call_int('eth_maxPriorityFeePerGas', [])
        return {
            'type': 2,
            'maxPriorityFeePerGas': tip,
            'maxFeePerGas': int(base_fee, 16) * self.FEE_MULTIPLIER + tip,
        }

    async def send_transfer(self, destination: str, amount: int) -> str:
        """
        Sign and submit a value transfer

        Args:
            destination: Recipient address
            amount: Value in wei

        Returns:
            Transaction hash
        """
        to = to_checksum_address(destination)
        sender = self._account.address

        chain_id = await self.get_chain_id()
        nonce = await self._call_int('eth_getTransactionCount', [sender, 'pending'])
        gas = await self._call_int('eth_estimateGas', [{'from': sender, 'to': to, 'value': hex(amount)}])

        tx = {
            'to': to,
            'value': amount,
            'nonce': nonce,
            'gas': gas,
            'chainId': chain_id,
        }
        tx.update(await self._fee_fields())

        try:
            signed = self._account.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            raise ClientError(f"Signing failed: {e}", method='sign_transaction') from e

        raw = signed.raw_transaction.hex()
        if not raw.startswith('0x'):
            raw = '0x' + raw

        tx_hash = await self._call('eth_sendRawTransaction', [raw])
        logger.debug(f"Submitted tx {tx_hash} (nonce={nonce}, gas={gas})")
        return tx_hash

    async def await_confirmation(self, pending_id: str) -> str:
        """
        Wait for block inclusion

        Args:
            pending_id: Transaction hash

        Returns:
            Hash of the block that included the transaction
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.confirmation_timeout

        while loop.time() < deadline:
            receipt = await self._call('eth_getTransactionReceipt', [pending_id])

            if receipt and receipt.get('blockNumber'):
                if int(receipt.get('status', '0x1'), 16) != 1:
                    raise ClientError(f"Transaction {pending_id} reverted", method='eth_getTransactionReceipt')
                logger.debug(f"✓ {pending_id} included in block {int(receipt['blockNumber'], 16)}")
                return receipt.get('blockHash') or pending_id

            await asyncio.sleep(self.poll_interval)

        raise ClientError(
            f"Confirmation timeout after {self.confirmation_timeout}s for {pending_id}",
            method='eth_getTransactionReceipt',
        )

    async def close(self):
        """Close the HTTP session"""
        if self._session and not self._session.closed:
            await self._session.close()
            logger.debug("JSON-RPC session closed")
        self._session = None
