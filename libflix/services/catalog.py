"""Read-only catalog of items loaded from a JSON file."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from libflix.domain.errors import CatalogError
from libflix.domain.models import CatalogItem

logger = logging.getLogger(__name__)


class Catalog:
    def __init__(self, items: Iterable[CatalogItem] = ()):
        self._items: Dict[str, CatalogItem] = {}
        for item in items:
            # First occurrence wins, like the static book lists this replaces.
            self._items.setdefault(item.id, item)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "Catalog":
        items: List[CatalogItem] = []
        skipped = 0
        for record in records:
            try:
                items.append(CatalogItem.from_dict(record))
            except ValueError as e:
                skipped += 1
                logger.warning(f"[CATALOG] Skipping record: {e}")
        if skipped:
            logger.info(f"[CATALOG] Loaded {len(items)} items, skipped {skipped}")
        return cls(items)

    @classmethod
    def from_json_file(cls, path) -> "Catalog":
        """Load a JSON list of items, or an object with a ``books`` list."""
        try:
            raw = json.loads(Path(path).read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            raise CatalogError(f"Unable to read catalog {path}: {e}") from e
        if isinstance(raw, dict):
            raw = raw.get('books', [])
        if not isinstance(raw, list):
            raise CatalogError(f"Catalog {path} must contain a list of books")
        return cls.from_records(raw)

    def get(self, item_id) -> Optional[CatalogItem]:
        return self._items.get(str(item_id))

    def all(self) -> List[CatalogItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self._items.values())
