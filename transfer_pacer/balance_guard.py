"""
Balance Guard

Admission check run before every transfer. Keeps a reserve of
balance // reserve_divisor (5% by default) untouched so the account is
never fully drained and gas can still be paid.

The reserve is an approximate heuristic, not a fee estimate: it is not
derived from gas price or network fee data.
"""

from dataclasses import dataclass

from loguru import logger


@dataclass(frozen=True)
class GuardDecision:
    """Result of an admission check"""
    allowed: bool
    balance: int
    amount: int
    reserve: int
    shortfall: int = 0

    @property
    def required(self) -> int:
        return self.amount + self.reserve

    def __bool__(self):
        return self.allowed


class BalanceGuard:
    """Deny transfers that would eat into the balance reserve"""

    DEFAULT_RESERVE_DIVISOR = 20  # 5%

    def __init__(self, reserve_divisor: int = DEFAULT_RESERVE_DIVISOR):
        if reserve_divisor <= 0:
            raise ValueError(f"reserve_divisor must be positive, got {reserve_divisor}")
        self.reserve_divisor = reserve_divisor

    def admit(self, balance: int, amount: int) -> GuardDecision:
        """
        Check whether amount can be sent from balance

        Denied when balance < amount + balance // reserve_divisor.

        Args:
            balance: Current balance (wei)
            amount: Proposed transfer amount (wei)

        Returns:
            GuardDecision, truthy when allowed
        """
        reserve = balance // self.reserve_divisor
        required = amount + reserve

        if balance < required:
            shortfall = required - balance
            logger.debug(f"Guard denied: balance={balance} required={required} shortfall={shortfall}")
            return GuardDecision(
                allowed=False,
                balance=balance,
                amount=amount,
                reserve=reserve,
                shortfall=shortfall,
            )

        return GuardDecision(allowed=True, balance=balance, amount=amount, reserve=reserve)
