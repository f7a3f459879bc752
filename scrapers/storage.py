"""
JSON snapshot files and a small keyed document store
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"


def save_json(path, data):
    """Write `data` as pretty JSON, replacing the file atomically."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    tmp.replace(path)


def load_json(path, default=None):
    path = Path(path)
    if not path.exists():
        return default
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def snapshot(source: str, items_key: str, items: list, **extra) -> dict:
    """Envelope used by every listing output."""
    return {
        "scraped_at": datetime.now().isoformat(),
        "source": source,
        **extra,
        f"total_{items_key}": len(items),
        items_key: items,
    }


def flatten_records(data) -> list:
    """
    Pull a flat record list out of any listing output shape:
    [...], {"medicines": [...]}, {"letters": [{"medicines": [...]}]}, {"A": [...], "B": [...]}
    """
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if isinstance(data.get("medicines"), list):
        return data["medicines"]
    if isinstance(data.get("letters"), list):
        records = []
        for group in data["letters"]:
            records.extend(group.get("medicines") or [])
        return records
    if isinstance(data.get("products"), list):
        return data["products"]

    records = []
    for value in data.values():
        if isinstance(value, list):
            records.extend(value)
    return records


class MedicineStore:
    """
    Records keyed by a unique field (URL for medicines, SKU for products),
    persisted as one JSON object per file.
    """

    def __init__(self, path, key: str = "url"):
        self.path = Path(path)
        self.key = key
        self.records = load_json(self.path, default={}) or {}

    def __len__(self):
        return len(self.records)

    def get(self, key_value: str) -> Optional[dict]:
        return self.records.get(key_value)

    def all(self) -> list:
        return list(self.records.values())

    def upsert(self, record: dict) -> bool:
        """Insert or update by key. Returns True when the record is new."""
        key_value = record.get(self.key)
        if not key_value:
            raise ValueError(f"Record has no '{self.key}'")

        timestamp = datetime.now().isoformat()
        current = self.records.get(key_value)
        created = current is None
        merged = {**(current or {}), **record}
        merged["created_at"] = (current or {}).get("created_at", timestamp)
        merged["last_updated"] = timestamp
        self.records[key_value] = merged
        return created

    def upsert_many(self, records: list) -> dict:
        created = updated = 0
        for record in records:
            if self.upsert(record):
                created += 1
            else:
                updated += 1
        self.save()
        return {"created": created, "updated": updated}

    def save(self):
        save_json(self.path, self.records)
        logger.info(f"Saved {len(self.records)} records to {self.path}")
