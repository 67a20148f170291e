# contract_runtime/core/shared/seeder.py
"""
Example-data seeder.

Loads <name>-openapi-examples.yaml into the resource's store when the store is
empty, so a freshly started runtime serves realistic data.

Which examples are imported:
- mapping values that have an `id`
- not list examples (values with an `items` array)
- not request payload examples (key contains "payload", "create" or "update")

Examples are imported in key order (Example1, Example2, ..., Example10) with
synthetic timestamps one minute apart starting at 2024-01-01T00:00:00Z, the
first example being the newest, so listings show them in key order.

Usage:
    from contract_runtime.core.shared.seeder import seed_all

    seeded = seed_all(registry, specifications)   # {"persons": 3, ...}
"""

import logging
import re
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml

from ..errors import SpecificationLoadError
from ..specs.definitions import ResourceSpecification
from ..store import ResourceStore, StoreRegistry
from .timestamps import format_timestamp

logger = logging.getLogger("contract_runtime.seeder")

SEED_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)
SKIPPED_KEY_WORDS = ("payload", "create", "update")


def load_examples(path: Optional[Path]) -> Dict[str, Any]:
    if path is None or not Path(path).is_file():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise SpecificationLoadError(f"Cannot read examples {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def _natural_key(key: str) -> List[Any]:
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", key)]


def _jsonable(value: Any) -> Any:
    """YAML turns unquoted dates into date objects; store them as ISO strings."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return format_timestamp(value) if value.tzinfo else value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def select_seed_records(examples: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Individual resource examples, in key order."""
    selected = []
    for key, value in examples.items():
        if not isinstance(value, dict):
            continue
        if isinstance(value.get("items"), list):
            continue
        if any(word in str(key).lower() for word in SKIPPED_KEY_WORDS):
            continue
        if not value.get("id"):
            continue
        selected.append((str(key), value))
    selected.sort(key=lambda item: _natural_key(item[0]))
    return [_jsonable(value) for _, value in selected]


def seed_store(store: ResourceStore, examples_path: Optional[Path]) -> int:
    """Import examples into an empty store; returns the number imported."""
    existing = store.count()
    if existing > 0:
        logger.info(f"Store {store.name} already has {existing} records, skipping seed")
        return 0

    records = select_seed_records(load_examples(examples_path))
    if not records:
        logger.info(f"No examples found for {store.name}, store will be empty")
        return 0

    total = len(records)
    for i, record in enumerate(records):
        timestamp = format_timestamp(SEED_EPOCH + timedelta(minutes=total - 1 - i))
        record["createdAt"] = timestamp
        record["updatedAt"] = timestamp
        store.insert_seed(record)

    logger.info(f"Seeded {total} {store.name} from examples")
    return total


def seed_all(registry: StoreRegistry, specifications: Iterable[ResourceSpecification]) -> Dict[str, int]:
    return {spec.name: seed_store(registry.open(spec), spec.examples_path) for spec in specifications}
