"""Build a ``DesiredCatalog`` from a directory of JSON files."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from catalogsync.domain.model import DesiredCatalog, Entity, EntityType

from .schema import RECORD_MODELS

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

log = getLogger(__name__)

DATAPACK_FILES: dict[EntityType, str] = {
    EntityType.CATEGORY: "categories.json",
    EntityType.METADATA: "metadata.json",
    EntityType.PRODUCT: "products.json",
    EntityType.VARIANT: "variants.json",
    EntityType.PRICE_BOOK: "price-books.json",
    EntityType.PRICE: "prices.json",
}


class DatapackError(RuntimeError):
    """Raised when a data pack file cannot be read or does not match its schema."""


def load_datapack(
    directory: Path,
    *,
    entity_types: Iterable[EntityType] | None = None,
) -> DesiredCatalog:
    """Read every known file under ``directory``; a missing file means no entities of that type."""

    if not directory.is_dir():
        raise DatapackError(f"Data pack directory not found: {directory}")

    selected = tuple(entity_types) if entity_types is not None else tuple(EntityType)
    catalog = DesiredCatalog()
    for entity_type in selected:
        path = directory / DATAPACK_FILES[entity_type]
        if not path.exists():
            log.debug("No %s in data pack (%s missing)", entity_type, path.name)
            continue
        count = 0
        for entity in _read_entities(entity_type, path):
            try:
                catalog.add(entity)
            except ValueError as exc:
                raise DatapackError(f"{path.name}: {exc}") from exc
            count += 1
        log.info("Loaded %s %s from %s", count, entity_type, path.name)
    return catalog


def _read_entities(entity_type: EntityType, path: Path) -> Iterator[Entity]:
    try:
        with path.open(encoding="utf-8") as handle:
            raw = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise DatapackError(f"Cannot read {path}: {exc}") from exc

    if not isinstance(raw, list):
        raise DatapackError(f"{path.name}: expected a JSON array of records")

    model = RECORD_MODELS[entity_type]
    for index, item in enumerate(raw):
        try:
            record = model.model_validate(item)
            yield Entity(
                entity_type=entity_type,
                natural_key=record.natural_key,
                parent_key=record.parent_key,
                payload=record.payload(),
            )
        except (ValidationError, ValueError) as exc:
            raise DatapackError(f"{path.name}[{index}]: {exc}") from exc
