from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

from .catalog import TariffCatalog
from .fees import EXAMPLE_AMOUNTS, FeeMode
from .output import write_report_json, write_schedule_csv, write_schedule_workbook
from .schedule import build_schedule

logger = logging.getLogger(__name__)


def run_schedule(
    tariffs_path: str | Path,
    output_csv: str,
    output_workbook: str,
    report_json: str,
    amounts: Iterable[Any] = EXAMPLE_AMOUNTS,
    mode: FeeMode = FeeMode.FAITHFUL,
    include_inactive: bool = True,
) -> dict:
    catalog = TariffCatalog.from_file(tariffs_path)
    rows, counters = build_schedule(catalog, amounts, mode=mode, include_inactive=include_inactive)

    write_schedule_csv(rows, output_csv)
    write_schedule_workbook(rows, output_workbook)
    report = write_report_json(
        report_json,
        counters,
        rows,
        source_file=Path(tariffs_path).name,
        fee_mode=mode.value,
    )
    logger.info("Fee schedule written: %s", report["summary_text"])

    return {
        "summary": counters,
        "tariff_issues": report["tariff_issues"],
        "output_csv": output_csv,
        "output_workbook": output_workbook,
        "report_json": report_json,
    }
