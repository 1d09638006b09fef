from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

from .config import TARIFFS_SCHEMA, load_json
from .tariff import (
    Tariff,
    TariffConfigError,
    TariffNotFoundError,
    TariffTier,
    TariffType,
    to_decimal,
    validate_tariff,
)

logger = logging.getLogger(__name__)

STATUS_FILTERS = {"all", "active", "inactive"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_fields(fields: dict[str, Any]) -> dict[str, Any]:
    out = dict(fields)
    if "type" in out:
        out["type"] = TariffType(out["type"])
    for key in ("percentage", "fixed_fee"):
        if key in out:
            out[key] = to_decimal(out[key] or 0)
    for key in ("minimum_fee", "maximum_fee"):
        if key in out and out[key] is not None:
            out[key] = to_decimal(out[key])
    if "tiers" in out:
        out["tiers"] = tuple(t if isinstance(t, TariffTier) else TariffTier.from_dict(t) for t in out["tiers"] or ())
    return out


class TariffCatalog:
    """In-memory tariff store backing the admin tariff screen.

    New and duplicated tariffs go to the front of the list. Nothing is
    persisted unless ``write`` is called.
    """

    def __init__(self, tariffs: list[Tariff] | None = None, clock: Callable[[], datetime] = _utcnow) -> None:
        self.tariffs: list[Tariff] = list(tariffs or [])
        self._clock = clock
        ids = [t.id for t in self.tariffs]
        if len(ids) != len(set(ids)):
            raise TariffConfigError("Tariff ids must be unique")

    @classmethod
    def from_file(cls, path: str | Path, clock: Callable[[], datetime] = _utcnow) -> "TariffCatalog":
        data = load_json(path, TARIFFS_SCHEMA)
        tariffs = [Tariff.from_dict(t) for t in data["tariffs"]]
        for tariff in tariffs:
            for issue in validate_tariff(tariff):
                logger.warning("Tariff %s: %s", tariff.id, issue)
        logger.info("Loaded %d tariffs from %s", len(tariffs), path)
        return cls(tariffs, clock=clock)

    def __len__(self) -> int:
        return len(self.tariffs)

    def __iter__(self):
        return iter(self.tariffs)

    def get(self, tariff_id: str) -> Tariff:
        for tariff in self.tariffs:
            if tariff.id == tariff_id:
                return tariff
        raise TariffNotFoundError(tariff_id)

    def _new_id(self) -> str:
        stamp = int(self._clock().timestamp() * 1000)
        candidate = f"tariff_{stamp}"
        existing = {t.id for t in self.tariffs}
        while candidate in existing:
            stamp += 1
            candidate = f"tariff_{stamp}"
        return candidate

    def create(self, name: str, description: str, type: TariffType | str, **fields: Any) -> Tariff:
        if not name or not description:
            raise TariffConfigError("Tariff name and description are required")
        now = self._clock()
        tariff_id = fields.pop("id", None) or self._new_id()
        if any(t.id == tariff_id for t in self.tariffs):
            raise TariffConfigError(f"Duplicate tariff id: {tariff_id}")
        tariff = Tariff(
            id=tariff_id,
            name=name,
            description=description,
            type=TariffType(type),
            created_at=now,
            updated_at=now,
            **_coerce_fields(fields),
        )
        self.tariffs.insert(0, tariff)
        logger.info("Created tariff %s (%s)", tariff.id, tariff.name)
        return tariff

    def update(self, tariff_id: str, **changes: Any) -> Tariff:
        current = self.get(tariff_id)
        changes.pop("id", None)
        changes.pop("created_at", None)
        changes = _coerce_fields(changes)
        if ("name" in changes and not changes["name"]) or ("description" in changes and not changes["description"]):
            raise TariffConfigError("Tariff name and description are required")
        updated = replace(current, updated_at=self._clock(), **changes)
        self.tariffs = [updated if t.id == tariff_id else t for t in self.tariffs]
        logger.info("Updated tariff %s", tariff_id)
        return updated

    def delete(self, tariff_id: str) -> Tariff:
        removed = self.get(tariff_id)
        self.tariffs = [t for t in self.tariffs if t.id != tariff_id]
        logger.info("Deleted tariff %s", tariff_id)
        return removed

    def duplicate(self, tariff_id: str) -> Tariff:
        source = self.get(tariff_id)
        now = self._clock()
        copy = replace(source, id=self._new_id(), name=f"{source.name} (Copy)", created_at=now, updated_at=now)
        self.tariffs.insert(0, copy)
        logger.info("Duplicated tariff %s as %s", tariff_id, copy.id)
        return copy

    def filter(
        self,
        type: Optional[TariffType | str] = None,
        status: str = "all",
        query: str = "",
    ) -> list[Tariff]:
        if status not in STATUS_FILTERS:
            raise ValueError(f"Unknown status filter: {status}")
        result = list(self.tariffs)
        if type not in (None, "all"):
            wanted = TariffType(type)
            result = [t for t in result if t.type is wanted]
        if status != "all":
            active = status == "active"
            result = [t for t in result if t.is_active == active]
        q = query.strip().lower()
        if q:
            result = [t for t in result if q in t.name.lower() or q in t.description.lower()]
        return sorted(result, key=lambda t: t.updated_at, reverse=True)

    def stats(self) -> dict[str, int]:
        return {
            "total": len(self.tariffs),
            "active": sum(1 for t in self.tariffs if t.is_active),
            "percentage": sum(1 for t in self.tariffs if t.type is TariffType.PERCENTAGE),
            "fixed": sum(1 for t in self.tariffs if t.type is TariffType.FIXED),
            "tiered": sum(1 for t in self.tariffs if t.type is TariffType.TIERED),
        }

    def to_dict(self) -> dict[str, Any]:
        return {"tariffs": [t.to_dict() for t in self.tariffs]}

    def write(self, path: str | Path) -> None:
        out = Path(path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(self.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
