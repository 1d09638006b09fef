from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path

from .catalog import TariffCatalog
from .config import DEFAULT_RETENTION_RULES_PATH, DEFAULT_TARIFFS_PATH, TARIFFS_SCHEMA, schema_errors
from .fees import EXAMPLE_AMOUNTS, FeeMode, calculate_fee, example_fees, round_money
from .pipeline import run_schedule
from .retention import DEFAULT_RETENTION, RetentionPolicy, ScheduleStatus, describe_schedule, retention_date
from .tariff import TariffConfigError, TariffError, parse_timestamp, validate_tariff


def _amount(value: str) -> Decimal:
    try:
        amount = Decimal(value.strip().replace(",", "").replace("£", "").replace("$", ""))
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a valid amount: {value!r}") from exc
    if not amount.is_finite():
        raise argparse.ArgumentTypeError(f"not a valid amount: {value!r}")
    return amount


def _timestamp(value: str) -> datetime:
    try:
        return parse_timestamp(value)
    except TariffConfigError as exc:
        raise argparse.ArgumentTypeError(f"not a valid date: {value!r}") from exc


def _mode(args: argparse.Namespace) -> FeeMode:
    return FeeMode.CORRECTED if args.corrected else FeeMode.FAITHFUL


def _cmd_quote(args: argparse.Namespace) -> int:
    catalog = TariffCatalog.from_file(args.tariffs)
    tariff = catalog.get(args.tariff_id)
    fee = calculate_fee(args.amount, tariff, _mode(args))
    print(f"tariff={tariff.id}")
    print(f"tariff_type={tariff.type.value}")
    print(f"amount={round_money(args.amount)}")
    print(f"fee={round_money(fee)}")
    print(f"currency={tariff.currency}")
    if not tariff.is_active:
        print("warning=tariff_inactive")
    for issue in validate_tariff(tariff):
        print(f"warning={issue}")
    return 0


def _cmd_examples(args: argparse.Namespace) -> int:
    catalog = TariffCatalog.from_file(args.tariffs)
    for tariff in catalog.filter(type=args.type, status=args.status, query=args.query):
        cells = " ".join(f"{round_money(a)}:{round_money(f)}" for a, f in example_fees(tariff, mode=_mode(args)))
        print(f"{tariff.id} {tariff.currency} {cells}")
    return 0


def _cmd_schedule(args: argparse.Namespace) -> int:
    result = run_schedule(
        tariffs_path=args.tariffs,
        output_csv=args.output_csv,
        output_workbook=args.output_workbook,
        report_json=args.report_json,
        amounts=args.amount or EXAMPLE_AMOUNTS,
        mode=_mode(args),
        include_inactive=not args.active_only,
    )
    counters = result["summary"]
    print(f"wrote_output_csv={args.output_csv}")
    print(f"wrote_output_workbook={args.output_workbook}")
    print(f"wrote_report={args.report_json}")
    print(f"summary={counters['tariffs_included']} tariffs / {counters['rows_written']} fee rows")
    return 0


def _cmd_stats(args: argparse.Namespace) -> int:
    catalog = TariffCatalog.from_file(args.tariffs)
    for key, value in catalog.stats().items():
        print(f"{key}={value}")
    return 0


def _cmd_retention(args: argparse.Namespace) -> int:
    now = args.now or datetime.now(timezone.utc)
    start = args.from_date or now
    policy = RetentionPolicy.from_file(args.rules)
    for rule in policy.filter_rules(data_type=args.data_type, status=args.status, query=args.query):
        due = retention_date(rule, start)
        print(f"{rule.id} {rule.data_type} {rule.retention_period}{rule.retention_unit.value[0]} delete_after={due.date().isoformat()}")
    for schedule in policy.schedules:
        when = describe_schedule(schedule.scheduled_date, now) if schedule.status is ScheduleStatus.PENDING else schedule.status.value
        print(f"{schedule.id} rule={schedule.rule_id} status={schedule.status.value} records={schedule.record_count} due={when}")
    for key, value in policy.stats().items():
        print(f"{key}={value}")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    payload = json.loads(Path(args.input).read_text())
    errors = schema_errors(payload, args.schema)
    if errors:
        raise SystemExit(f"validation_error={'; '.join(errors)}")
    print("validation=ok")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tariff-calc", description="Collection fee tariff tools")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    quote = sub.add_parser("quote", help="Calculate the fee for one amount under one tariff")
    quote.add_argument("amount", type=_amount)
    quote.add_argument("--tariff-id", required=True)
    quote.add_argument("--tariffs", default=str(DEFAULT_TARIFFS_PATH))
    quote.add_argument("--corrected", action="store_true", help="Do not re-add the fixed fee on fixed tariffs")
    quote.set_defaults(func=_cmd_quote)

    examples = sub.add_parser("examples", help="Print example fees for each tariff")
    examples.add_argument("--tariffs", default=str(DEFAULT_TARIFFS_PATH))
    examples.add_argument("--type", choices=["all", "percentage", "fixed", "tiered"], default="all")
    examples.add_argument("--status", choices=["all", "active", "inactive"], default="all")
    examples.add_argument("--query", default="")
    examples.add_argument("--corrected", action="store_true")
    examples.set_defaults(func=_cmd_examples)

    schedule = sub.add_parser("schedule", help="Write a fee schedule (CSV, XLSX, JSON report) for all tariffs")
    schedule.add_argument("--tariffs", default=str(DEFAULT_TARIFFS_PATH))
    schedule.add_argument("--amount", type=_amount, action="append", help="Repeatable; defaults to 1000, 5000, 10000")
    schedule.add_argument("--active-only", action="store_true")
    schedule.add_argument("--corrected", action="store_true")
    schedule.add_argument("--output-csv", default="out/schedule/fee_schedule.csv")
    schedule.add_argument("--output-workbook", default="out/schedule/fee_schedule.xlsx")
    schedule.add_argument("--report-json", default="out/schedule/report.json")
    schedule.set_defaults(func=_cmd_schedule)

    stats = sub.add_parser("stats", help="Count tariffs by type and status")
    stats.add_argument("--tariffs", default=str(DEFAULT_TARIFFS_PATH))
    stats.set_defaults(func=_cmd_stats)

    retention = sub.add_parser("retention", help="Show deletion dates for retention rules")
    retention.add_argument("--rules", default=str(DEFAULT_RETENTION_RULES_PATH))
    retention.add_argument("--from-date", type=_timestamp, default=None, help="ISO date; defaults to now")
    retention.add_argument("--now", type=_timestamp, default=None, help="Reference time for schedules; defaults to now")
    retention.add_argument("--data-type", choices=["all", *DEFAULT_RETENTION], default="all")
    retention.add_argument("--status", choices=["all", "active", "inactive"], default="active")
    retention.add_argument("--query", default="")
    retention.set_defaults(func=_cmd_retention)

    validate_cmd = sub.add_parser("validate", help="Validate JSON against JSON schema")
    validate_cmd.add_argument("input")
    validate_cmd.add_argument("--schema", default=str(TARIFFS_SCHEMA))
    validate_cmd.set_defaults(func=_cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")
    try:
        return args.func(args)
    except TariffError as exc:
        raise SystemExit(f"error={exc}")


if __name__ == "__main__":
    raise SystemExit(main())
