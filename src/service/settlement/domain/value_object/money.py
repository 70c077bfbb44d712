"""
Fixed-point currency helpers

Amounts are Decimals with 9 fractional digits (the ledger's smallest unit).
Splits are derived by subtraction so the parts always add up to the total.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

import attrs

from src.platform.exception.exceptions import ValidationError


CURRENCY_DECIMALS = 9
_QUANTUM = Decimal(1).scaleb(-CURRENCY_DECIMALS)


def to_amount(value: Decimal | int | str) -> Decimal:
    """Quantize to the smallest ledger unit. Floats are refused."""
    if isinstance(value, float):
        raise ValidationError('Monetary amounts must not be floats')
    try:
        return Decimal(value).quantize(_QUANTUM, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise ValidationError(f'Invalid amount: {value!r}') from e


def parse_fee_rate(raw: Decimal | int | str) -> Decimal:
    try:
        rate = Decimal(str(raw).strip())
    except InvalidOperation as e:
        raise ValidationError(f'Invalid fee percentage: {raw!r}') from e
    if not rate.is_finite() or rate < 0 or rate > 1:
        raise ValidationError(f'Fee percentage must be between 0 and 1, got {raw!r}')
    return rate


@attrs.frozen
class RevenueSplit:
    total: Decimal
    platform_share: Decimal
    counterparty_share: Decimal  # organizer (primary sale) or seller (resale)

    @classmethod
    def compute(cls, *, total: Decimal, fee_rate: Decimal) -> 'RevenueSplit':
        total = to_amount(total)
        if total < 0:
            raise ValidationError('Total amount must not be negative')
        rate = parse_fee_rate(fee_rate)
        platform_share = to_amount(total * rate)
        return cls(
            total=total,
            platform_share=platform_share,
            counterparty_share=total - platform_share,
        )

    @classmethod
    def platform_only(cls, *, total: Decimal) -> 'RevenueSplit':
        total = to_amount(total)
        return cls(total=total, platform_share=total, counterparty_share=to_amount(0))
