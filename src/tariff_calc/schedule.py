from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from .catalog import TariffCatalog
from .fees import EXAMPLE_AMOUNTS, FeeMode, calculate_fee, round_money
from .tariff import to_decimal, validate_tariff


@dataclass
class ScheduleRow:
    row: dict[str, Any]
    tariff_id: str
    issues: list[str]


def build_schedule(
    catalog: TariffCatalog,
    amounts: Iterable[Any] = EXAMPLE_AMOUNTS,
    mode: FeeMode = FeeMode.FAITHFUL,
    include_inactive: bool = True,
) -> tuple[list[ScheduleRow], dict[str, int]]:
    amount_values = [to_decimal(a) for a in amounts]
    output: list[ScheduleRow] = []
    counters = {
        "tariffs_total": len(catalog),
        "tariffs_included": 0,
        "tariffs_skipped_inactive": 0,
        "tariffs_with_issues": 0,
        "rows_written": 0,
    }

    for tariff in catalog:
        if not tariff.is_active and not include_inactive:
            counters["tariffs_skipped_inactive"] += 1
            continue
        counters["tariffs_included"] += 1
        issues = validate_tariff(tariff)
        if issues:
            counters["tariffs_with_issues"] += 1

        for amount in amount_values:
            fee: Decimal = calculate_fee(amount, tariff, mode)
            output.append(
                ScheduleRow(
                    row={
                        "Tariff ID": tariff.id,
                        "Tariff Name": tariff.name,
                        "Type": tariff.type.value,
                        "Currency": tariff.currency,
                        "Active": tariff.is_active,
                        "Amount": round_money(amount),
                        "Fee": round_money(fee),
                        "Fee Mode": mode.value,
                        "Issues": ";".join(issues),
                    },
                    tariff_id=tariff.id,
                    issues=issues,
                )
            )
            counters["rows_written"] += 1

    return output, counters
