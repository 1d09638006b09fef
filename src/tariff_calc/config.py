from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from .tariff import TariffConfigError

logger = logging.getLogger(__name__)

SCHEMA_DIR = Path(__file__).parent / "schemas"
TARIFFS_SCHEMA = SCHEMA_DIR / "tariffs.schema.json"
RETENTION_RULES_SCHEMA = SCHEMA_DIR / "retention_rules.schema.json"

DEFAULT_TARIFFS_PATH = Path("config/tariffs/default_tariffs.json")
DEFAULT_RETENTION_RULES_PATH = Path("config/retention/default_rules.json")


def schema_errors(payload: Any, schema_path: str | Path, limit: int = 10) -> list[str]:
    schema = json.loads(Path(schema_path).read_text())
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path])
    return [f"{'.'.join(map(str, e.path)) or '<root>'}:{e.message}" for e in errors[:limit]]


def load_json(path: str | Path, schema_path: str | Path) -> dict[str, Any]:
    p = Path(path)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise TariffConfigError(f"Config file not found: {p}") from exc
    except json.JSONDecodeError as exc:
        raise TariffConfigError(f"Invalid JSON in {p}: {exc}") from exc

    errors = schema_errors(payload, schema_path)
    if errors:
        raise TariffConfigError(f"{p} failed validation: " + "; ".join(errors))
    logger.debug("Loaded %s (schema %s)", p, Path(schema_path).name)
    return payload
