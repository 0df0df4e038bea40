"""
Backup bundles: export every collection to one JSON-serializable object and
import it back.

Import is best-effort per collection. Each collection present in the bundle
is validated and written as a single replace, so it either lands completely
or stays as it was; a failure in one collection does not undo the ones
already written. The returned ImportReport says which collections made it.

Ids are preserved as exported, so links such as an expense's
linkedMaintenanceId still resolve after a restore into the same store.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .catalog import (
    BUNDLE_ALIASES,
    BUNDLE_ARRAYS,
    PROFILE,
    PROFILE_ID,
    SAVINGS_KINDS,
    SETTINGS,
)
from .errors import CarbookError, StorageError, ValidationError
from .store import RecordStore
from .totals import recompute
from .validation import check_schema, load_schema

logger = logging.getLogger(__name__)

BUNDLE_VERSION = 1
APP_VERSION = "1.0.0"


@dataclass
class ImportReport:
    """Per-collection outcome of an import."""

    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "counts": self.counts,
        }


def export_all(store: RecordStore, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Snapshot the profile and every collection into one bundle."""
    now = now or datetime.now().astimezone()
    bundle: Dict[str, Any] = {
        "meta": {
            "exportedAt": now.isoformat(timespec="seconds"),
            "version": BUNDLE_VERSION,
            "appVersion": APP_VERSION,
        },
        "profile": store.read(PROFILE, PROFILE_ID),
    }
    for name in BUNDLE_ARRAYS:
        bundle[name] = store.list(name)
    logger.info(
        "Exported %d record(s)", sum(len(bundle[name]) for name in BUNDLE_ARRAYS)
    )
    return bundle


def _bundle_arrays(bundle: Dict[str, Any], report: ImportReport) -> Dict[str, Any]:
    """Map bundle keys onto collection names, honoring legacy aliases."""
    arrays = {name: bundle[name] for name in BUNDLE_ARRAYS if name in bundle}
    for alias, name in BUNDLE_ALIASES.items():
        if alias not in bundle:
            continue
        if name in arrays:
            report.skipped.append(alias)
        else:
            arrays[name] = bundle[alias]
    return arrays


def _check_array(name: str, value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        raise ValidationError(f"{name}: expected an array, got {type(value).__name__}")
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise ValidationError(f"{name}[{i}]: expected an object")
    return value


def import_all(store: RecordStore, bundle: Any) -> ImportReport:
    """
    Restore collections from a bundle.

    Collections missing from the bundle are left alone. The profile and
    settings are upserted (settings merge by id); every other collection is
    cleared and reloaded. Running totals are recomputed for the savings
    collections that were reloaded.
    """
    if not isinstance(bundle, dict):
        raise ValidationError("Bundle must be a JSON object")
    report = ImportReport()

    if bundle.get("profile") is None:
        report.skipped.append(PROFILE)
    else:
        try:
            if not isinstance(bundle["profile"], dict):
                raise ValidationError("profile: expected an object")
            profile = dict(bundle["profile"], id=PROFILE_ID)
            report.counts[PROFILE] = store.replace_all(PROFILE, [profile])
            report.succeeded.append(PROFILE)
        except CarbookError as e:
            report.failed[PROFILE] = str(e)

    arrays = _bundle_arrays(bundle, report)
    for name in BUNDLE_ARRAYS:
        if name not in arrays:
            report.skipped.append(name)
            continue
        try:
            records = _check_array(name, arrays[name])
            if name == SETTINGS:
                merged = {s.get("id"): s for s in store.list(SETTINGS)}
                merged.update({s.get("id"): s for s in records})
                records = list(merged.values())
            report.counts[name] = store.replace_all(name, records)
            report.succeeded.append(name)
        except CarbookError as e:
            report.failed[name] = str(e)

    for kind in SAVINGS_KINDS:
        if kind in report.succeeded:
            try:
                recompute(store, kind)
            except CarbookError as e:
                report.failed[f"runningTotals/{kind}"] = str(e)

    if report.failed:
        logger.warning(
            "Import finished with failures: %s (succeeded: %s)",
            ", ".join(sorted(report.failed)),
            ", ".join(report.succeeded) or "none",
        )
    else:
        logger.info("Imported %s", ", ".join(report.succeeded) or "nothing")
    return report


def validate_bundle(bundle: Any) -> None:
    """Check a bundle against the bundle JSON schema."""
    check_schema(bundle, load_schema("bundle"), "bundle")


def export_filename(fmt: str = "json", today: Optional[date] = None) -> str:
    """File name for a download/export made today."""
    today = today or date.today()
    return f"car_maintenance_data_{today.isoformat()}.{fmt}"


def _csv_cell(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    if value is None:
        return ""
    return value


def bundle_to_csv(bundle: Dict[str, Any]) -> str:
    """
    Flatten a bundle into one CSV text with a block per collection.

    Each non-empty collection gets a '### name ###' line, a header row with
    every field seen in it, then one row per record. Nested values are
    JSON-encoded into a single cell.
    """
    out = io.StringIO()
    writer = csv.writer(out, lineterminator="\n")
    sections = []
    if bundle.get("profile"):
        sections.append((PROFILE, [bundle["profile"]]))
    sections.extend((name, bundle.get(name) or []) for name in BUNDLE_ARRAYS)

    for name, records in sections:
        if not records:
            continue
        headers: List[str] = []
        for record in records:
            headers.extend(k for k in record if k not in headers)
        out.write(f"### {name} ###\n")
        writer.writerow(headers)
        for record in records:
            writer.writerow([_csv_cell(record.get(h)) for h in headers])
        out.write("\n")
    return out.getvalue()


def write_bundle(path: Union[str, Path], bundle: Dict[str, Any]) -> None:
    """Write a bundle as pretty-printed JSON."""
    try:
        with open(path, "w", encoding="utf-8") as fp:
            json.dump(bundle, fp, indent=2, ensure_ascii=False)
    except OSError as e:
        raise StorageError(f"Cannot write bundle {path}: {e}") from e


def read_bundle(path: Union[str, Path]) -> Any:
    """Read a JSON bundle file."""
    try:
        with open(path, "r", encoding="utf-8") as fp:
            return json.load(fp)
    except json.JSONDecodeError as e:
        raise ValidationError(f"{path} is not valid JSON: {e}") from None
    except OSError as e:
        raise StorageError(f"Cannot read bundle {path}: {e}") from e
