from decimal import Decimal

from tariff_calc.fees import FeeMode, calculate_fee, example_fees, round_money
from tariff_calc.tariff import Tariff, TariffTier, TariffType


def _tier(lo, hi, pct):
    return TariffTier(Decimal(str(lo)), Decimal(str(hi)) if hi is not None else None, Decimal(str(pct)))


def _percentage(pct="25", fixed="0", minimum="50", maximum="5000"):
    return Tariff(
        id="t_pct",
        name="Standard Collection",
        type=TariffType.PERCENTAGE,
        percentage=Decimal(pct),
        fixed_fee=Decimal(fixed),
        minimum_fee=Decimal(minimum) if minimum is not None else None,
        maximum_fee=Decimal(maximum) if maximum is not None else None,
    )


def _tiered(tiers, fixed="100", minimum="150", maximum="10000"):
    return Tariff(
        id="t_tier",
        name="Premium Recovery",
        type=TariffType.TIERED,
        tiers=tuple(tiers),
        fixed_fee=Decimal(fixed),
        minimum_fee=Decimal(minimum),
        maximum_fee=Decimal(maximum),
    )


def _fixed(fixed="500", minimum="500", maximum="500"):
    return Tariff(
        id="t_fixed",
        name="Fixed Rate Service",
        type=TariffType.FIXED,
        fixed_fee=Decimal(fixed),
        minimum_fee=Decimal(minimum),
        maximum_fee=Decimal(maximum),
    )


PREMIUM_TIERS = [_tier(0, 1000, 30), _tier(1000, 5000, 25), _tier(5000, None, 20)]


def test_fixed_fee_is_counted_twice_but_masked_by_clamps():
    assert calculate_fee(1000, _fixed()) == Decimal("500")


def test_fixed_fee_double_count_visible_with_wide_clamps():
    assert calculate_fee(1000, _fixed(minimum="0", maximum="100000")) == Decimal("1000")


def test_corrected_mode_counts_fixed_fee_once():
    tariff = _fixed(minimum="0", maximum="100000")
    assert calculate_fee(1000, tariff, FeeMode.CORRECTED) == Decimal("500")
    # other types are unaffected by the mode
    assert calculate_fee(500, _tiered(PREMIUM_TIERS), FeeMode.CORRECTED) == Decimal("250")


def test_percentage_with_clamps():
    tariff = _percentage()
    assert calculate_fee(Decimal("1000"), tariff) == Decimal("250")
    assert calculate_fee(Decimal("100"), tariff) == Decimal("50")
    assert calculate_fee(Decimal("100000"), tariff) == Decimal("5000")


def test_tiered_first_match_plus_fixed_fee():
    tariff = _tiered(PREMIUM_TIERS)
    assert calculate_fee(Decimal("500"), tariff) == Decimal("250")
    assert calculate_fee(Decimal("10000"), tariff) == Decimal("2100")
    assert calculate_fee(Decimal("0"), tariff) == Decimal("150")


def test_tier_boundaries_go_to_earlier_tier():
    tariff = _tiered(PREMIUM_TIERS)
    assert calculate_fee(Decimal("1000"), tariff) == Decimal("400")
    assert calculate_fee(Decimal("5000"), tariff) == Decimal("1350")


def test_tiers_are_scanned_in_caller_order():
    overlapping = _tiered([_tier(0, None, 10), _tier(0, 1000, 50)], fixed="0", minimum="0", maximum="0")
    assert calculate_fee(Decimal("500"), overlapping) == Decimal("50")

    unsorted = _tiered([_tier(1000, None, 20), _tier(0, 1000, 30)], fixed="0", minimum="0", maximum="0")
    assert calculate_fee(Decimal("1000"), unsorted) == Decimal("200")
    assert calculate_fee(Decimal("999"), unsorted) == Decimal("299.7")


def test_no_matching_tier_leaves_base_at_zero():
    tariff = _tiered([_tier(1000, 2000, 25)], fixed="0", minimum="0", maximum="100000")
    assert calculate_fee(Decimal("50"), tariff) == Decimal("0")


def test_minimum_then_maximum_when_bounds_inverted():
    tariff = _percentage(pct="10", minimum="1000", maximum="500")
    # raw 100 -> raised to 1000 -> lowered to 500
    assert calculate_fee(Decimal("1000"), tariff) == Decimal("500")
    # raw 10000 above both bounds: only the maximum applies
    assert calculate_fee(Decimal("100000"), tariff) == Decimal("500")


def test_raw_fee_above_both_bounds_clamps_to_maximum():
    assert calculate_fee(Decimal("40000"), _percentage()) == Decimal("5000")


def test_zero_or_missing_clamps_are_ignored():
    assert calculate_fee(Decimal("100"), _percentage(minimum="0", maximum="0")) == Decimal("25")
    assert calculate_fee(Decimal("100"), _percentage(minimum=None, maximum=None)) == Decimal("25")


def test_negative_amount_is_not_rejected():
    tariff = _percentage(minimum=None, maximum=None)
    assert calculate_fee(Decimal("-100"), tariff) == Decimal("-25")


def test_decimal_arithmetic_has_no_float_drift():
    tariff = _percentage(pct="10", minimum=None, maximum=None)
    assert calculate_fee(0.3, tariff) == Decimal("0.03")
    assert calculate_fee("1000.10", tariff) == Decimal("100.01")


def test_very_large_amounts_stay_exact():
    tariff = _percentage(minimum=None, maximum=None)
    amount = Decimal("98765432109876543210987654.32")
    assert calculate_fee(amount, tariff) == Decimal("24691358027469135802746913.58")


def test_calculation_is_pure():
    tariff = _tiered(PREMIUM_TIERS)
    snapshot = tariff.to_dict()
    first = calculate_fee(Decimal("7500"), tariff)
    second = calculate_fee(Decimal("7500"), tariff)
    assert first == second == Decimal("1600")
    assert tariff.to_dict() == snapshot


def test_example_fees_and_rounding():
    rows = example_fees(_percentage(pct="12.345", minimum=None, maximum=None))
    assert [a for a, _ in rows] == [Decimal("1000"), Decimal("5000"), Decimal("10000")]
    assert round_money(rows[0][1]) == Decimal("123.45")
    assert round_money(Decimal("0.125")) == Decimal("0.13")
