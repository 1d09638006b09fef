from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font

from .schedule import ScheduleRow

SCHEDULE_SHEET = "Fee Schedule"
MONEY_FORMAT = "#,##0.00"


def _columns(rows: list[ScheduleRow]) -> list[str]:
    columns: list[str] = []
    seen: set[str] = set()
    for r in rows:
        for k in r.row.keys():
            if k not in seen:
                seen.add(k)
                columns.append(k)
    return columns


def write_schedule_csv(rows: list[ScheduleRow], output_path: str | Path) -> None:
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    columns = _columns(rows)
    with output_file.open("w", newline="") as f:
        if not columns:
            return
        writer = csv.DictWriter(f, fieldnames=columns)
        writer.writeheader()
        for r in rows:
            writer.writerow({k: str(v) if isinstance(v, Decimal) else v for k, v in r.row.items()})


def write_schedule_workbook(rows: list[ScheduleRow], output_workbook_path: str | Path) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = SCHEDULE_SHEET
    columns = _columns(rows)
    ws.append(columns)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for r in rows:
        ws.append([r.row.get(c) for c in columns])

    for idx, name in enumerate(columns, start=1):
        if name in ("Amount", "Fee"):
            for row_num in range(2, ws.max_row + 1):
                ws.cell(row=row_num, column=idx).number_format = MONEY_FORMAT

    out = Path(output_workbook_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    wb.save(out)


def write_report_json(
    report_path: str | Path,
    counters: dict[str, int],
    rows: list[ScheduleRow],
    source_file: str,
    fee_mode: str,
) -> dict[str, Any]:
    report_file = Path(report_path)
    report_file.parent.mkdir(parents=True, exist_ok=True)

    issues: dict[str, list[str]] = {}
    for r in rows:
        if r.issues:
            issues.setdefault(r.tariff_id, r.issues)

    report: dict[str, Any] = {
        "run_id": datetime.now(timezone.utc).strftime("run-%Y%m%d%H%M%S"),
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "source_file": source_file,
        "fee_mode": fee_mode,
        **counters,
        "tariff_issues": issues,
        "summary_text": f"{counters['tariffs_included']} tariffs / {counters['rows_written']} fee rows",
    }

    report_file.write_text(json.dumps(report, indent=2))
    return report
