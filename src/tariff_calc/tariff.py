from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


class TariffError(ValueError):
    pass


class TariffConfigError(TariffError):
    pass


class TariffNotFoundError(TariffError, KeyError):
    def __str__(self) -> str:
        return f"Unknown tariff: {self.args[0]}" if self.args else "Unknown tariff"


class TariffType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    TIERED = "tiered"


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise TariffConfigError(f"Not a valid amount: {value!r}") from exc


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return to_decimal(value) if value is not None else None


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now(timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise TariffConfigError(f"Not a valid timestamp: {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _json_money(value: Optional[Decimal]) -> Optional[str]:
    # Written as strings so a reload yields the same Decimal.
    return format(value, "f") if value is not None else None


@dataclass(frozen=True)
class TariffTier:
    min_amount: Decimal
    max_amount: Optional[Decimal]
    percentage: Decimal

    def matches(self, amount: Decimal) -> bool:
        if amount < self.min_amount:
            return False
        if self.max_amount is None:
            return True
        return amount <= self.max_amount

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TariffTier":
        return cls(
            min_amount=to_decimal(data.get("minAmount", 0)),
            max_amount=_optional_decimal(data.get("maxAmount")),
            percentage=to_decimal(data.get("percentage", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "minAmount": _json_money(self.min_amount),
            "maxAmount": _json_money(self.max_amount),
            "percentage": _json_money(self.percentage),
        }


@dataclass(frozen=True)
class Tariff:
    """A named collection fee policy.

    ``minimum_fee`` and ``maximum_fee`` of ``None`` or zero both mean "no clamp".
    Tier order is kept exactly as given; the calculator scans it first-match.
    """

    id: str
    name: str
    type: TariffType
    description: str = ""
    percentage: Decimal = Decimal("0")
    tiers: tuple[TariffTier, ...] = ()
    fixed_fee: Decimal = Decimal("0")
    minimum_fee: Optional[Decimal] = None
    maximum_fee: Optional[Decimal] = None
    currency: str = "GBP"
    clause_text: str = ""
    is_active: bool = True
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Tariff":
        try:
            tariff_type = TariffType(str(data["type"]).lower())
        except (KeyError, ValueError) as exc:
            raise TariffConfigError(f"Invalid tariff type for {data.get('id')!r}: {data.get('type')!r}") from exc
        try:
            created = parse_timestamp(data.get("createdAt"))
            return cls(
                id=str(data["id"]),
                name=data.get("name", ""),
                description=data.get("description", ""),
                type=tariff_type,
                percentage=to_decimal(data.get("percentage") or 0),
                tiers=tuple(TariffTier.from_dict(t) for t in data.get("tiers") or []),
                fixed_fee=to_decimal(data.get("fixedFee") or 0),
                minimum_fee=_optional_decimal(data.get("minimumFee")),
                maximum_fee=_optional_decimal(data.get("maximumFee")),
                currency=data.get("currency", "GBP"),
                clause_text=data.get("clauseText", ""),
                is_active=bool(data.get("isActive", True)),
                created_at=created,
                updated_at=parse_timestamp(data.get("updatedAt")) if data.get("updatedAt") else created,
            )
        except TariffConfigError as exc:
            raise TariffConfigError(f"Tariff {data.get('id')!r}: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "percentage": _json_money(self.percentage),
            "tiers": [t.to_dict() for t in self.tiers],
            "fixedFee": _json_money(self.fixed_fee),
            "minimumFee": _json_money(self.minimum_fee),
            "maximumFee": _json_money(self.maximum_fee),
            "currency": self.currency,
            "clauseText": self.clause_text,
            "isActive": self.is_active,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }


def validate_tariff(tariff: Tariff) -> list[str]:
    """Report data problems without rejecting the tariff.

    The fee calculation itself never consults this; callers decide whether an
    issue is worth a warning or a refusal.
    """
    issues: list[str] = []
    for label, value in (("fixed_fee", tariff.fixed_fee), ("minimum_fee", tariff.minimum_fee), ("maximum_fee", tariff.maximum_fee)):
        if value is not None and value < 0:
            issues.append(f"{label} is negative")
    if tariff.type is TariffType.PERCENTAGE and not (Decimal("0") <= tariff.percentage <= Decimal("100")):
        issues.append("percentage outside 0-100")
    if tariff.minimum_fee and tariff.maximum_fee and tariff.minimum_fee > tariff.maximum_fee:
        issues.append("minimum_fee greater than maximum_fee")

    if tariff.type is TariffType.TIERED:
        if not tariff.tiers:
            issues.append("tiered tariff has no tiers")
        previous_max: Optional[Decimal] = None
        open_ended_seen = False
        for idx, tier in enumerate(tariff.tiers, start=1):
            if tier.min_amount < 0:
                issues.append(f"tier {idx} has negative min_amount")
            if not (Decimal("0") <= tier.percentage <= Decimal("100")):
                issues.append(f"tier {idx} percentage outside 0-100")
            if tier.max_amount is not None and tier.max_amount < tier.min_amount:
                issues.append(f"tier {idx} has max_amount < min_amount")
            if open_ended_seen or (previous_max is not None and tier.min_amount < previous_max):
                issues.append(f"tier {idx} overlaps or is out of order")
            elif idx == 1 and tier.min_amount > 0:
                issues.append("gap before tier 1")
            elif previous_max is not None and tier.min_amount > previous_max:
                issues.append(f"gap before tier {idx}")
            if tier.max_amount is None:
                open_ended_seen = True
            previous_max = tier.max_amount
    return issues
