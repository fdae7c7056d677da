"""
Pacer Settings

Startup configuration read from environment variables (a .env file is
loaded by the CLI for credentials). Validated once; nothing is re-read
mid-run.

Variables:
- PRIVATE_KEY, RPC_URL (required)
- DEST (defaults to the sender address)
- TX_MIN_PER_DAY / TX_MAX_PER_DAY (3 / 6)
- DELAY_MIN_SEC / DELAY_MAX_SEC (60 / 180)
- AMOUNT_MIN / AMOUNT_MAX in the native unit ("0.0001" / "0.001")
- CONFIRMATION_TIMEOUT_SEC (300)
- PACER_HISTORY_DB (unset disables the SQLite ledger)
- LOG_LEVEL (INFO)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from loguru import logger

from .chain_client import normalize_address
from .errors import ConfigurationError
from .range_sampler import AmountRange, DelayRange, QuotaRange
from .units import parse_ether


DEFAULTS = {
    'TX_MIN_PER_DAY': 3,
    'TX_MAX_PER_DAY': 6,
    'DELAY_MIN_SEC': 60,
    'DELAY_MAX_SEC': 180,
    'AMOUNT_MIN': "0.0001",
    'AMOUNT_MAX': "0.001",
    'CONFIRMATION_TIMEOUT_SEC': 300,
    'LOG_LEVEL': "INFO",
}


def _get(mapping: Mapping[str, str], key: str):
    value = mapping.get(key)
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return DEFAULTS.get(key)
    return value.strip() if isinstance(value, str) else value


def _get_int(mapping: Mapping[str, str], key: str) -> int:
    value = _get(mapping, key)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class PacerSettings:
    """Validated startup configuration"""
    private_key: str
    rpc_url: str
    destination: Optional[str]
    quota_range: QuotaRange
    delay_range: DelayRange
    amount_range: AmountRange
    confirmation_timeout: int = 300
    history_db: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, str]) -> 'PacerSettings':
        """
        Build settings from a flat mapping of variable names

        Raises:
            ConfigurationError: missing credential/endpoint, malformed
                destination, non-numeric values or inverted ranges
        """
        private_key = _get(mapping, 'PRIVATE_KEY')
        if not private_key:
            raise ConfigurationError("Missing PRIVATE_KEY")

        rpc_url = _get(mapping, 'RPC_URL')
        if not rpc_url:
            raise ConfigurationError("Missing RPC_URL")

        destination = _get(mapping, 'DEST')
        if destination:
            destination = normalize_address(destination)

        quota_range = QuotaRange(_get_int(mapping, 'TX_MIN_PER_DAY'), _get_int(mapping, 'TX_MAX_PER_DAY'))
        delay_range = DelayRange(_get_int(mapping, 'DELAY_MIN_SEC'), _get_int(mapping, 'DELAY_MAX_SEC'))
        amount_range = AmountRange(parse_ether(_get(mapping, 'AMOUNT_MIN')), parse_ether(_get(mapping, 'AMOUNT_MAX')))

        confirmation_timeout = _get_int(mapping, 'CONFIRMATION_TIMEOUT_SEC')
        if confirmation_timeout <= 0:
            raise ConfigurationError(f"CONFIRMATION_TIMEOUT_SEC must be positive, got {confirmation_timeout}")

        return cls(
            private_key=private_key,
            rpc_url=rpc_url,
            destination=destination or None,
            quota_range=quota_range,
            delay_range=delay_range,
            amount_range=amount_range,
            confirmation_timeout=confirmation_timeout,
            history_db=_get(mapping, 'PACER_HISTORY_DB'),
            log_level=str(_get(mapping, 'LOG_LEVEL')).upper(),
        )

    @classmethod
    def from_env(cls) -> 'PacerSettings':
        return cls.from_mapping(os.environ)

    def resolve_destination(self, sender: str) -> str:
        """Configured destination, or the sender itself when none is set"""
        return self.destination or sender

    def log_summary(self):
        logger.info("Pacer settings:")
        logger.info(f"  RPC: {self.rpc_url}")
        logger.info(f"  Destination: {self.destination or '(sender)'}")
        logger.info(f"  Quota: {self.quota_range.minimum}-{self.quota_range.maximum} tx/day")
        logger.info(f"  Delay: {self.delay_range.minimum}-{self.delay_range.maximum} sec")
        logger.info(f"  Amount: {self.amount_range.minimum}-{self.amount_range.maximum} wei")
        logger.info(f"  History DB: {self.history_db or 'disabled'}")

    def __repr__(self):
        # keep the credential out of logs and tracebacks
        return (
            f"PacerSettings(rpc_url={self.rpc_url!r}, destination={self.destination!r}, "
            f"quota_range={self.quota_range}, delay_range={self.delay_range}, "
            f"amount_range={self.amount_range})"
        )
