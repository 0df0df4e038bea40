"""
Record store: durable named collections of records on local disk.

Each collection lives in its own YAML document, <data_dir>/<name>.yaml:

    nextId: 4
    records:
      - id: 1
        ...

Every mutation loads the document, changes it in memory and writes it back
through a temporary file that replaces the original, so a write to one
collection either fully lands or leaves the previous document in place.
Writes that touch two collections (maintenance delete cascading to
expenses) are two separate units.
"""

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .catalog import EXPENSES, MAINTENANCE, Collection, get_collection
from .errors import NotFoundError, StorageError, ValidationError
from .validation import validate_record

logger = logging.getLogger(__name__)

Key = Union[int, str]
Record = Dict[str, Any]


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _sort_value(value: Any):
    """Sort key that tolerates mixed value types within one index."""
    if isinstance(value, dict):
        value = value.get("name") or ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value, "")
    return (1, 0, str(value))


class RecordStore:
    """CRUD over named collections persisted as YAML files."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot open data directory {self.data_dir}: {e}") from e

    def __repr__(self) -> str:
        return f"RecordStore({str(self.data_dir)!r})"

    # -------------------------------------------------------------------------
    # Engine
    # -------------------------------------------------------------------------

    def _path(self, collection: str) -> Path:
        return self.data_dir / f"{collection}.yaml"

    def _load(self, collection: str) -> Dict[str, Any]:
        """Load the raw collection document, empty if it was never written."""
        path = self._path(collection)
        if not path.exists():
            return {"nextId": 1, "records": []}
        try:
            with open(path, "r", encoding="utf-8") as fp:
                data = yaml.load(fp, Loader=yaml.SafeLoader) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Cannot read collection '{collection}': {e}") from e
        if not isinstance(data, dict) or not isinstance(data.get("records", []), list):
            raise StorageError(f"Collection file {path} is corrupt")
        data.setdefault("nextId", 1)
        data["records"] = data.get("records") or []
        return data

    def _save(self, collection: str, data: Dict[str, Any]) -> None:
        """Write the collection document atomically (temp file + replace)."""
        path = self._path(collection)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{collection}.", suffix=".yaml", dir=str(self.data_dir)
        )
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fp:
                yaml.safe_dump(
                    data,
                    fp,
                    default_flow_style=False,
                    allow_unicode=True,
                    sort_keys=False,
                    width=120,
                )
            os.replace(tmp_path, path)
        except (OSError, yaml.YAMLError) as e:
            raise StorageError(f"Cannot write collection '{collection}': {e}") from e
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

    @staticmethod
    def _coerce_key(spec: Collection, key: Key) -> Key:
        """Integer-keyed collections accept numeric strings (CLI/URL input)."""
        if spec.auto_increment and isinstance(key, str) and key.strip().isdigit():
            return int(key)
        return key

    @staticmethod
    def _index_of(records: List[Record], key: Key) -> Optional[int]:
        for i, record in enumerate(records):
            if record.get("id") == key:
                return i
        return None

    @staticmethod
    def _check_unique(spec: Collection, records: List[Record], record: Record) -> None:
        """Reject a second record with the same non-empty unique field."""
        for field in spec.unique:
            value = record.get(field)
            if value in (None, ""):
                continue
            for other in records:
                if other.get(field) == value and other.get("id") != record.get("id"):
                    raise ValidationError(
                        f"{spec.name}: {field} '{value}' already used by record {other.get('id')}"
                    )

    def _check_key(self, spec: Collection, record: Record) -> None:
        key = record.get("id")
        if spec.auto_increment:
            if not isinstance(key, int) or isinstance(key, bool) or key < 1:
                raise ValidationError(f"{spec.name}: id must be a positive integer, got {key!r}")
        elif not isinstance(key, str) or not key:
            raise ValidationError(f"{spec.name}: records need a string id")

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create(self, collection: str, record: Record) -> Key:
        """
        Store a new record and return its id.

        Integer-keyed collections assign the next id when the record has
        none. A record whose id is already taken is rejected.
        """
        spec = get_collection(collection)
        data = self._load(collection)
        record = dict(record)
        if spec.auto_increment and record.get("id") is None:
            record["id"] = data["nextId"]
        self._check_key(spec, record)
        if self._index_of(data["records"], record["id"]) is not None:
            raise ValidationError(f"{collection}: id {record['id']!r} already exists")
        stamp = now_iso()
        record.setdefault("createdAt", stamp)
        record["updatedAt"] = stamp
        validate_record(collection, record)
        self._check_unique(spec, data["records"], record)

        data["records"].append(record)
        if spec.auto_increment:
            data["nextId"] = max(data["nextId"], record["id"] + 1)
        self._save(collection, data)
        logger.info("Created %s/%s", collection, record["id"])
        return record["id"]

    def read(self, collection: str, key: Key) -> Optional[Record]:
        """Point lookup; None when the record does not exist."""
        spec = get_collection(collection)
        key = self._coerce_key(spec, key)
        records = self._load(collection)["records"]
        i = self._index_of(records, key)
        return records[i] if i is not None else None

    def list(
        self, collection: str, order_by: Optional[str] = None, descending: bool = True
    ) -> List[Record]:
        """
        All records in the collection.

        When order_by names an indexed field, records are sorted by it (most
        recent / highest first by default) with records lacking the field at
        the end. Otherwise records come back in insertion order.
        """
        spec = get_collection(collection)
        records = self._load(collection)["records"]
        if order_by is None:
            return records
        if not spec.is_indexed(order_by):
            logger.debug("%s has no index on %s, using insertion order", collection, order_by)
            return records
        present = [r for r in records if r.get(order_by) is not None]
        missing = [r for r in records if r.get(order_by) is None]
        present.sort(key=lambda r: _sort_value(r[order_by]), reverse=descending)
        return present + missing

    def find(self, collection: str, field: str, value: Any) -> List[Record]:
        """All records whose field equals value."""
        return [r for r in self.list(collection) if r.get(field) == value]

    def range(
        self,
        collection: str,
        index: str,
        lower: Any = None,
        upper: Any = None,
        lower_open: bool = False,
        upper_open: bool = False,
    ) -> List[Record]:
        """
        Records whose indexed field lies between lower and upper, ascending.

        A None bound leaves that side unbounded; the *_open flags exclude the
        bound itself. Records without the field are never in range. Raises
        NotFoundError when index is not an indexed field of the collection.
        """
        spec = get_collection(collection)
        if not spec.is_indexed(index):
            raise NotFoundError(f"Index '{index}' not found in collection '{collection}'")
        low = _sort_value(lower) if lower is not None else None
        high = _sort_value(upper) if upper is not None else None

        def in_range(value: Any) -> bool:
            key = _sort_value(value)
            if low is not None and (key < low or (lower_open and key == low)):
                return False
            if high is not None and (key > high or (upper_open and key == high)):
                return False
            return True

        return [
            r for r in self.list(collection, order_by=index, descending=False)
            if r.get(index) is not None and in_range(r[index])
        ]

    def update(self, collection: str, record: Record) -> Key:
        """
        Replace a stored record in full and return its id.

        A record without an id is inserted. Singleton collections (profile,
        settings, running totals) upsert; integer-keyed collections raise
        NotFoundError when the id does not exist.
        """
        spec = get_collection(collection)
        if record.get("id") is None:
            return self.create(collection, record)
        record = dict(record)
        record["id"] = self._coerce_key(spec, record["id"])
        self._check_key(spec, record)
        data = self._load(collection)
        i = self._index_of(data["records"], record["id"])
        if i is None and spec.auto_increment:
            raise NotFoundError(f"{collection}: no record with id {record['id']!r}")
        stamp = now_iso()
        if i is not None:
            record.setdefault("createdAt", data["records"][i].get("createdAt", stamp))
        else:
            record.setdefault("createdAt", stamp)
        record["updatedAt"] = stamp
        validate_record(collection, record)
        self._check_unique(spec, data["records"], record)

        if i is None:
            data["records"].append(record)
        else:
            data["records"][i] = record
        self._save(collection, data)
        logger.debug("Updated %s/%s", collection, record["id"])
        return record["id"]

    def delete(self, collection: str, key: Key) -> None:
        """
        Remove a record; no-op when absent.

        Deleting a maintenance record also deletes every expense linked to it
        through linkedMaintenanceId. The cascade is a second write: if it
        fails, the maintenance record stays deleted and StorageError is
        raised with committed_id set.
        """
        spec = get_collection(collection)
        key = self._coerce_key(spec, key)
        data = self._load(collection)
        remaining = [r for r in data["records"] if r.get("id") != key]
        if len(remaining) == len(data["records"]):
            return
        data["records"] = remaining
        self._save(collection, data)
        logger.info("Deleted %s/%s", collection, key)

        if collection == MAINTENANCE:
            try:
                self._delete_linked_expenses(key)
            except StorageError as e:
                raise StorageError(
                    f"maintenance/{key} deleted but its linked expenses were not: {e}",
                    committed_id=key,
                ) from e

    def _delete_linked_expenses(self, maintenance_id: Key) -> int:
        data = self._load(EXPENSES)
        kept = [r for r in data["records"] if r.get("linkedMaintenanceId") != maintenance_id]
        removed = len(data["records"]) - len(kept)
        if removed:
            data["records"] = kept
            self._save(EXPENSES, data)
            logger.info(
                "Deleted %d expense(s) linked to maintenance/%s", removed, maintenance_id
            )
        return removed

    def clear(self, collection: str) -> None:
        """Remove every record in the collection."""
        get_collection(collection)
        data = self._load(collection)
        data["records"] = []
        self._save(collection, data)
        logger.info("Cleared %s", collection)

    def replace_all(self, collection: str, records: List[Record]) -> int:
        """
        Clear the collection and bulk-insert records as one unit.

        Ids are kept as given; records without one get fresh ids. Duplicate
        ids or invalid records reject the whole batch and leave the stored
        collection untouched. Returns the number of records written.
        """
        spec = get_collection(collection)
        data = self._load(collection)
        given = [r.get("id") for r in records if r.get("id") is not None]
        duplicates = sorted({str(k) for k in given if given.count(k) > 1})
        if duplicates:
            raise ValidationError(f"{collection}: duplicate ids {', '.join(duplicates)}")

        next_id = max([data["nextId"]] + [k + 1 for k in given if isinstance(k, int)])
        batch: List[Record] = []
        for record in records:
            record = dict(record)
            if spec.auto_increment and record.get("id") is None:
                record["id"] = next_id
                next_id += 1
            self._check_key(spec, record)
            validate_record(collection, record)
            self._check_unique(spec, batch, record)
            batch.append(record)

        self._save(collection, {"nextId": next_id, "records": batch})
        logger.info("Replaced %s with %d record(s)", collection, len(batch))
        return len(batch)
