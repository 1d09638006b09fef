from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

from dateutil.relativedelta import relativedelta

from .config import RETENTION_RULES_SCHEMA, load_json
from .tariff import TariffConfigError, TariffNotFoundError, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]
STATUS_FILTERS = {"all", "active", "inactive"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RetentionUnit(str, enum.Enum):
    DAYS = "days"
    MONTHS = "months"
    YEARS = "years"


class ScheduleStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RetentionRecordNotFoundError(TariffNotFoundError):
    def __str__(self) -> str:
        return f"Unknown retention rule or schedule: {self.args[0]}" if self.args else "Unknown retention record"


# Default retention period per data type, as (period, unit).
DEFAULT_RETENTION: dict[str, tuple[int, RetentionUnit]] = {
    "cases": (7, RetentionUnit.YEARS),
    "documents": (6, RetentionUnit.YEARS),
    "communications": (3, RetentionUnit.YEARS),
    "invoices": (7, RetentionUnit.YEARS),
    "users": (2, RetentionUnit.YEARS),
    "gdpr_requests": (3, RetentionUnit.YEARS),
}


@dataclass(frozen=True)
class RetentionRule:
    id: str
    name: str
    data_type: str
    retention_period: int
    retention_unit: RetentionUnit
    description: str = ""
    is_active: bool = True
    auto_delete: bool = False
    legal_basis: str = ""
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RetentionRule":
        created = parse_timestamp(data.get("createdAt"))
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            data_type=data["dataType"],
            retention_period=int(data["retentionPeriod"]),
            retention_unit=RetentionUnit(data["retentionUnit"]),
            description=data.get("description", ""),
            is_active=bool(data.get("isActive", True)),
            auto_delete=bool(data.get("autoDelete", False)),
            legal_basis=data.get("legalBasis", ""),
            created_at=created,
            updated_at=parse_timestamp(data.get("updatedAt")) if data.get("updatedAt") else created,
        )


@dataclass(frozen=True)
class RetentionSchedule:
    """A batch of records queued for deletion under one rule."""

    id: str
    rule_id: str
    rule_name: str
    data_type: str
    scheduled_date: datetime
    record_count: int
    status: ScheduleStatus = ScheduleStatus.PENDING
    created_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RetentionSchedule":
        return cls(
            id=str(data["id"]),
            rule_id=str(data["ruleId"]),
            rule_name=data.get("ruleName", ""),
            data_type=data.get("dataType", ""),
            scheduled_date=parse_timestamp(data["scheduledDate"]),
            record_count=int(data.get("recordCount", 0)),
            status=ScheduleStatus(data.get("status", "pending")),
            created_at=parse_timestamp(data.get("createdAt")),
            completed_at=parse_timestamp(data["completedAt"]) if data.get("completedAt") else None,
            error=data.get("error"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
            "dataType": self.data_type,
            "scheduledDate": format_timestamp(self.scheduled_date),
            "recordCount": self.record_count,
            "status": self.status.value,
            "createdAt": format_timestamp(self.created_at),
            "completedAt": format_timestamp(self.completed_at) if self.completed_at else None,
            "error": self.error,
        }


def default_rule(data_type: str) -> RetentionRule:
    period, unit = DEFAULT_RETENTION[data_type]
    return RetentionRule(id=f"default_{data_type}", name=data_type, data_type=data_type, retention_period=period, retention_unit=unit)


def retention_date(rule: RetentionRule, from_date: Optional[DateLike] = None) -> DateLike:
    """Date on which data covered by ``rule`` becomes due for deletion.

    Month and year steps land on the last valid day when the target month is
    shorter (31 Jan + 1 month -> 28/29 Feb).
    """
    start = from_date if from_date is not None else datetime.now(timezone.utc)
    if rule.retention_unit is RetentionUnit.DAYS:
        return start + relativedelta(days=rule.retention_period)
    if rule.retention_unit is RetentionUnit.MONTHS:
        return start + relativedelta(months=rule.retention_period)
    if rule.retention_unit is RetentionUnit.YEARS:
        return start + relativedelta(years=rule.retention_period)
    return start


def days_until(scheduled: datetime, now: Optional[datetime] = None) -> int:
    """Whole days from ``now`` to ``scheduled``; negative once overdue.

    Partial days are truncated toward zero.
    """
    now = now if now is not None else datetime.now(timezone.utc)
    seconds = (scheduled - now).total_seconds()
    return int(seconds / 86400)


def describe_schedule(scheduled: datetime, now: Optional[datetime] = None) -> str:
    remaining = days_until(scheduled, now)
    if remaining < 0:
        return f"{abs(remaining)} days overdue"
    return f"{remaining} days remaining"


class RetentionPolicy:
    """Retention rules and deletion schedules behind the retention admin screen."""

    def __init__(
        self,
        rules: list[RetentionRule] | None = None,
        schedules: list[RetentionSchedule] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.rules: list[RetentionRule] = list(rules or [])
        self.schedules: list[RetentionSchedule] = list(schedules or [])
        self._clock = clock

    @classmethod
    def from_file(cls, path: str | Path, clock: Callable[[], datetime] = _utcnow) -> "RetentionPolicy":
        data = load_json(path, RETENTION_RULES_SCHEMA)
        rules = [RetentionRule.from_dict(r) for r in data["rules"]]
        schedules = [RetentionSchedule.from_dict(s) for s in data.get("schedules", [])]
        logger.info("Loaded %d retention rules and %d schedules from %s", len(rules), len(schedules), path)
        return cls(rules, schedules, clock=clock)

    def get_rule(self, rule_id: str) -> RetentionRule:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        raise RetentionRecordNotFoundError(rule_id)

    def get_schedule(self, schedule_id: str) -> RetentionSchedule:
        for schedule in self.schedules:
            if schedule.id == schedule_id:
                return schedule
        raise RetentionRecordNotFoundError(schedule_id)

    def create_rule(
        self,
        name: str,
        data_type: str,
        description: str,
        legal_basis: str,
        retention_period: Optional[int] = None,
        retention_unit: Optional[RetentionUnit | str] = None,
        is_active: bool = True,
        auto_delete: bool = False,
    ) -> RetentionRule:
        if not name or not description or not legal_basis:
            raise TariffConfigError("Rule name, description and legal basis are required")
        if data_type not in DEFAULT_RETENTION:
            raise TariffConfigError(f"Unknown data type: {data_type}")
        default = default_rule(data_type)
        now = self._clock()
        rule = RetentionRule(
            id=f"rule_{int(now.timestamp() * 1000)}",
            name=name,
            data_type=data_type,
            retention_period=default.retention_period if retention_period is None else int(retention_period),
            retention_unit=default.retention_unit if retention_unit is None else RetentionUnit(retention_unit),
            description=description,
            is_active=is_active,
            auto_delete=auto_delete,
            legal_basis=legal_basis,
            created_at=now,
            updated_at=now,
        )
        self.rules.insert(0, rule)
        logger.info("Created retention rule %s (%s)", rule.id, rule.name)
        return rule

    def delete_rule(self, rule_id: str) -> RetentionRule:
        removed = self.get_rule(rule_id)
        self.rules = [r for r in self.rules if r.id != rule_id]
        logger.info("Deleted retention rule %s", rule_id)
        return removed

    def toggle_rule(self, rule_id: str) -> RetentionRule:
        current = self.get_rule(rule_id)
        toggled = replace(current, is_active=not current.is_active, updated_at=self._clock())
        self.rules = [toggled if r.id == rule_id else r for r in self.rules]
        logger.info("Retention rule %s %s", rule_id, "activated" if toggled.is_active else "deactivated")
        return toggled

    def filter_rules(self, data_type: Optional[str] = None, status: str = "all", query: str = "") -> list[RetentionRule]:
        if status not in STATUS_FILTERS:
            raise ValueError(f"Unknown status filter: {status}")
        result = list(self.rules)
        if data_type not in (None, "all"):
            result = [r for r in result if r.data_type == data_type]
        if status != "all":
            active = status == "active"
            result = [r for r in result if r.is_active == active]
        q = query.strip().lower()
        if q:
            result = [
                r for r in result
                if q in r.name.lower() or q in r.description.lower() or q in r.legal_basis.lower()
            ]
        return result

    def _set_schedule(self, schedule_id: str, **changes: Any) -> RetentionSchedule:
        updated = replace(self.get_schedule(schedule_id), **changes)
        self.schedules = [updated if s.id == schedule_id else s for s in self.schedules]
        return updated

    def start_schedule(self, schedule_id: str) -> RetentionSchedule:
        schedule = self._set_schedule(schedule_id, status=ScheduleStatus.PROCESSING)
        logger.info("Deletion started for schedule %s (%d records)", schedule_id, schedule.record_count)
        return schedule

    def complete_schedule(self, schedule_id: str) -> RetentionSchedule:
        schedule = self._set_schedule(schedule_id, status=ScheduleStatus.COMPLETED, completed_at=self._clock(), error=None)
        logger.info("Deletion completed for schedule %s", schedule_id)
        return schedule

    def fail_schedule(self, schedule_id: str, error: str) -> RetentionSchedule:
        schedule = self._set_schedule(schedule_id, status=ScheduleStatus.FAILED, error=error)
        logger.warning("Deletion failed for schedule %s: %s", schedule_id, error)
        return schedule

    def stats(self) -> dict[str, int]:
        pending = [s for s in self.schedules if s.status is ScheduleStatus.PENDING]
        return {
            "total_rules": len(self.rules),
            "active_rules": sum(1 for r in self.rules if r.is_active),
            "auto_delete_rules": sum(1 for r in self.rules if r.auto_delete),
            "pending_schedules": len(pending),
            "total_records_scheduled": sum(s.record_count for s in pending),
        }


def load_rules(path: str | Path) -> list[RetentionRule]:
    return RetentionPolicy.from_file(path).rules
