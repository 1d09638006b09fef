from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from tariff_calc.catalog import TariffCatalog
from tariff_calc.fees import calculate_fee
from tariff_calc.tariff import TariffConfigError, TariffNotFoundError, TariffType

CONFIG = Path(__file__).resolve().parents[1] / "config" / "tariffs" / "default_tariffs.json"
NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _catalog():
    return TariffCatalog.from_file(CONFIG, clock=lambda: NOW)


def test_loads_sample_tariffs():
    catalog = _catalog()
    assert len(catalog) == 3
    assert catalog.get("tariff_2").type is TariffType.TIERED
    assert catalog.stats() == {"total": 3, "active": 2, "percentage": 1, "fixed": 1, "tiered": 1}


def test_sample_tariffs_example_fees():
    catalog = _catalog()
    assert calculate_fee(Decimal("1000"), catalog.get("tariff_1")) == Decimal("250")
    assert calculate_fee(Decimal("10000"), catalog.get("tariff_2")) == Decimal("2100")
    assert calculate_fee(Decimal("5000"), catalog.get("tariff_3")) == Decimal("500")


def test_get_unknown_tariff():
    with pytest.raises(TariffNotFoundError):
        _catalog().get("nope")
    with pytest.raises(KeyError):
        _catalog().get("nope")


def test_filter_by_type_status_and_query():
    catalog = _catalog()
    assert [t.id for t in catalog.filter()] == ["tariff_1", "tariff_2", "tariff_3"]
    assert [t.id for t in catalog.filter(status="active")] == ["tariff_1", "tariff_2"]
    assert [t.id for t in catalog.filter(type="fixed")] == ["tariff_3"]
    assert [t.id for t in catalog.filter(query="LEGAL escalation")] == ["tariff_2"]
    with pytest.raises(ValueError):
        catalog.filter(status="archived")


def test_create_requires_name_and_description():
    with pytest.raises(TariffConfigError):
        _catalog().create(name="", description="x", type="percentage")


def test_create_coerces_values_and_goes_first():
    catalog = _catalog()
    tariff = catalog.create(
        name="Small Claims",
        description="Low value claims",
        type="tiered",
        tiers=[{"minAmount": 0, "maxAmount": None, "percentage": 15}],
        fixed_fee=25,
        minimum_fee="40",
    )
    assert tariff.id == f"tariff_{int(NOW.timestamp() * 1000)}"
    assert catalog.tariffs[0] is tariff
    assert tariff.created_at == NOW
    assert calculate_fee(Decimal("100"), tariff) == Decimal("40")
    assert calculate_fee(Decimal("1000"), tariff) == Decimal("175")


def test_update_keeps_identity_and_refreshes_timestamp():
    catalog = _catalog()
    before = catalog.get("tariff_1")
    updated = catalog.update("tariff_1", percentage="20", id="hijack")
    assert updated.id == "tariff_1"
    assert updated.created_at == before.created_at
    assert updated.updated_at == NOW
    assert calculate_fee(Decimal("1000"), catalog.get("tariff_1")) == Decimal("200")
    # newest first after the update
    assert catalog.filter()[0].id == "tariff_1"


def test_duplicate_and_delete():
    catalog = _catalog()
    first = catalog.duplicate("tariff_2")
    second = catalog.duplicate("tariff_2")
    assert first.name == "Premium Recovery (Copy)"
    assert first.id != second.id
    assert first.tiers == catalog.get("tariff_2").tiers
    assert catalog.tariffs[0] is second
    assert len(catalog) == 5

    catalog.delete(first.id)
    assert len(catalog) == 4
    with pytest.raises(TariffNotFoundError):
        catalog.delete(first.id)


def test_write_and_reload(tmp_path: Path):
    catalog = _catalog()
    catalog.duplicate("tariff_1")
    out = tmp_path / "tariffs.json"
    catalog.write(out)
    reloaded = TariffCatalog.from_file(out)
    assert [t.id for t in reloaded] == [t.id for t in catalog]
    assert reloaded.get("tariff_2").tiers == catalog.get("tariff_2").tiers


def test_duplicate_ids_rejected():
    tariff = _catalog().get("tariff_1")
    with pytest.raises(TariffConfigError):
        TariffCatalog([tariff, tariff])


def test_write_and_reload_keeps_exact_amounts(tmp_path: Path):
    catalog = _catalog()
    created = catalog.create(
        name="Large Portfolio",
        description="High value book",
        type="tiered",
        tiers=[{"minAmount": 0, "maxAmount": "99999999999999999.99", "percentage": "12.3456789012345678"}],
        fixed_fee="12345678901234567.89",
        maximum_fee="0.0000001",
    )
    out = tmp_path / "tariffs.json"
    catalog.write(out)
    reloaded = TariffCatalog.from_file(out).get(created.id)
    assert reloaded.fixed_fee == Decimal("12345678901234567.89")
    assert reloaded.maximum_fee == Decimal("0.0000001")
    assert reloaded.tiers[0].max_amount == Decimal("99999999999999999.99")
    assert reloaded.tiers[0].percentage == Decimal("12.3456789012345678")
    assert reloaded == created
