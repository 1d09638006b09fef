from __future__ import annotations

import enum
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Iterable

from .tariff import Tariff, TariffType, to_decimal

EXAMPLE_AMOUNTS = (Decimal("1000"), Decimal("5000"), Decimal("10000"))
HUNDRED = Decimal("100")
# Significant digits for fee arithmetic; amount * rate / 100 must not round.
PRECISION = 60


class FeeMode(str, enum.Enum):
    # FAITHFUL re-adds fixed_fee after the type branch, so FIXED tariffs count it twice.
    FAITHFUL = "faithful"
    CORRECTED = "corrected"


def _base_fee(amount: Decimal, tariff: Tariff) -> Decimal:
    if tariff.type is TariffType.FIXED:
        return tariff.fixed_fee
    if tariff.type is TariffType.PERCENTAGE:
        return amount * tariff.percentage / HUNDRED
    if tariff.type is TariffType.TIERED:
        for tier in tariff.tiers:
            if tier.matches(amount):
                return amount * tier.percentage / HUNDRED
    return Decimal("0")


def calculate_fee(amount: Any, tariff: Tariff, mode: FeeMode = FeeMode.FAITHFUL) -> Decimal:
    """Collection fee owed on ``amount`` under ``tariff``.

    Tiers are scanned in the order given and the first matching tier's rate is
    applied to the whole amount. ``fixed_fee`` is then added for every tariff
    type. Minimum and maximum are applied one after the other, so when
    ``minimum_fee > maximum_fee`` the maximum has the last word.

    No validation happens here; see ``validate_tariff``. The result is exact and
    unrounded.
    """
    amount = to_decimal(amount)
    with localcontext() as ctx:
        ctx.prec = PRECISION
        fee = _base_fee(amount, tariff)
        if not (mode is FeeMode.CORRECTED and tariff.type is TariffType.FIXED):
            fee += tariff.fixed_fee

    if tariff.minimum_fee and fee < tariff.minimum_fee:
        fee = tariff.minimum_fee
    if tariff.maximum_fee and fee > tariff.maximum_fee:
        fee = tariff.maximum_fee
    return fee


def round_money(value: Decimal) -> Decimal:
    return value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def example_fees(
    tariff: Tariff,
    amounts: Iterable[Any] = EXAMPLE_AMOUNTS,
    mode: FeeMode = FeeMode.FAITHFUL,
) -> list[tuple[Decimal, Decimal]]:
    return [(to_decimal(a), calculate_fee(a, tariff, mode)) for a in amounts]
