"""
Native unit conversion (18 decimals)
"""

from decimal import Decimal, InvalidOperation

from .errors import ConfigurationError


DECIMALS = 18
WEI_PER_ETHER = 10 ** DECIMALS


def parse_ether(value) -> int:
    """
    Convert a decimal string in the native unit to wei

    Args:
        value: Decimal string such as "0.0001"

    Returns:
        Amount in wei

    Raises:
        ConfigurationError: non-numeric, negative, or finer than 1 wei
    """
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ConfigurationError(f"Invalid amount: {value!r}") from None

    if not amount.is_finite():
        raise ConfigurationError(f"Invalid amount: {value!r}")
    if amount < 0:
        raise ConfigurationError(f"Amount must be non-negative: {value!r}")

    wei = amount.scaleb(DECIMALS)
    if wei != wei.to_integral_value():
        raise ConfigurationError(f"Amount {value!r} has more than {DECIMALS} decimal places")

    return int(wei)


def format_ether(wei: int) -> str:
    """Format wei as a plain decimal string in the native unit"""
    text = format(Decimal(wei).scaleb(-DECIMALS), 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'
