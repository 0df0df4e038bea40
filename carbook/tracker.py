"""Tracker class - the entry point the CLI and web UI talk to."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from .bundle import ImportReport, export_all, import_all
from .catalog import (
    BUNDLE_ARRAYS,
    COLLECTIONS,
    EXPENSES,
    FUEL,
    LAST_FUEL_PRICE_SETTING,
    MAINTENANCE,
    PROFILE,
    PROFILE_ID,
    RUNNING_TOTALS,
    CAR_SAVINGS,
    SAVINGS_KINDS,
    SETTINGS,
    UI_SETTING,
    get_collection,
)
from .config import Config
from .efficiency import (
    EfficiencyInterval,
    EfficiencySummary,
    average_efficiency,
    calculate_efficiency,
)
from .errors import CarbookError, NotFoundError, ValidationError
from .normalize import is_number, normalize_fuel, normalize_maintenance
from .reminder import Reminder
from .reminders import collect_reminders, complete_service, record_label
from .reports import build_report
from .store import Key, Record, RecordStore, now_iso
from .totals import (
    RunningTotal,
    SavingsBreakdown,
    breakdown_by_source,
    get_current,
    get_goal,
    recompute,
    set_goal,
    sum_amounts,
)

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_KM = 10000
DEFAULT_INTERVAL_MONTHS = 6


@dataclass
class DashboardSummary:
    """Headline figures for the dashboard."""

    odometer: float
    fuel_spend: float
    maintenance_spend: float
    expense_total: float
    savings_total: float
    efficiency: Optional[EfficiencySummary]
    due_reminders: int
    record_counts: Dict[str, int]


class Tracker:
    """
    Vehicle expense tracker over one record store.

    Every write goes through here so derived state stays in step with the
    raw logs: savings writes recompute the running total before returning,
    fuel and maintenance writes push a higher odometer into the profile,
    and fuel/maintenance records get their derived fields filled in.
    """

    def __init__(self, store: RecordStore, config: Optional[Config] = None):
        self.store = store
        self.config = config or Config(data_dir=store.data_dir)

    @classmethod
    def open(cls, config: Config) -> "Tracker":
        """Open the store in config.data_dir and make sure the profile exists."""
        tracker = cls(RecordStore(config.data_dir), config)
        tracker.ensure_profile()
        return tracker

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    def ensure_profile(self) -> Record:
        """Create the profile and ui settings on first run."""
        profile = self.store.read(PROFILE, PROFILE_ID)
        if profile is None:
            profile = {
                "id": PROFILE_ID,
                "odometer": 0,
                "intervalKm": DEFAULT_INTERVAL_KM,
                "intervalMonths": DEFAULT_INTERVAL_MONTHS,
                "updatedAt": now_iso(),
            }
            self.store.update(PROFILE, profile)
            logger.info("Created vehicle profile")
        if self.store.read(SETTINGS, UI_SETTING) is None:
            self.store.update(SETTINGS, {"id": UI_SETTING, "fuelUnit": "kmpl"})
        return profile

    @property
    def current_odometer(self) -> float:
        profile = self.store.read(PROFILE, PROFILE_ID)
        return (profile or {}).get("odometer") or 0

    def raise_odometer(self, odometer: Optional[float]) -> bool:
        """Move the profile odometer up to odometer; never lowers it."""
        if not is_number(odometer):
            return False
        profile = self.ensure_profile()
        if odometer <= (profile.get("odometer") or 0):
            return False
        self.store.update(PROFILE, dict(profile, odometer=odometer))
        logger.info("Odometer raised to %s", odometer)
        return True

    def set_odometer(self, odometer: float) -> Record:
        """Manual odometer correction; the only path that may lower it."""
        if not is_number(odometer) or odometer < 0:
            raise ValidationError(f"Invalid odometer reading {odometer!r}")
        profile = dict(self.ensure_profile(), odometer=odometer)
        self.store.update(PROFILE, profile)
        logger.info("Odometer set to %s", odometer)
        return profile

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def _prepare(self, collection: str, record: Record) -> Record:
        get_collection(collection)
        if collection == RUNNING_TOTALS:
            raise ValidationError("Running totals are derived and cannot be written")
        if not isinstance(record, dict):
            raise ValidationError(f"Invalid {collection} record: expected a mapping")
        if collection == FUEL:
            return normalize_fuel(record)
        if collection == MAINTENANCE:
            return normalize_maintenance(record)
        return dict(record)

    def _after_write(self, collection: str, record: Optional[Record]) -> None:
        if collection in SAVINGS_KINDS:
            recompute(self.store, collection)
        if record is None:
            return
        if collection in (FUEL, MAINTENANCE):
            self.raise_odometer(record.get("odometer"))
        if collection == FUEL and is_number(record.get("pricePerLiter")):
            self.store.update(
                SETTINGS,
                {"id": LAST_FUEL_PRICE_SETTING, "value": record["pricePerLiter"]},
            )

    def list_records(
        self, collection: str, order_by: Optional[str] = None, descending: bool = True
    ) -> List[Record]:
        return self.store.list(collection, order_by=order_by, descending=descending)

    def get_record(self, collection: str, key: Key) -> Optional[Record]:
        return self.store.read(collection, key)

    def add_record(self, collection: str, record: Record) -> Key:
        record = self._prepare(collection, record)
        key = self.store.create(collection, record)
        self._after_write(collection, record)
        return key

    def update_record(self, collection: str, record: Record) -> Key:
        record = self._prepare(collection, record)
        key = self.store.update(collection, record)
        self._after_write(collection, record)
        return key

    def delete_record(self, collection: str, key: Key) -> None:
        if collection == PROFILE:
            raise ValidationError("The vehicle profile cannot be deleted")
        if collection == RUNNING_TOTALS:
            raise ValidationError("Running totals are derived and cannot be deleted")
        self.store.delete(collection, key)
        self._after_write(collection, None)

    def reset(self) -> None:
        """Delete every record in every collection, then recreate the profile."""
        for name in COLLECTIONS:
            self.store.clear(name)
        logger.warning("All data cleared")
        self.ensure_profile()

    # -------------------------------------------------------------------------
    # Maintenance workflows
    # -------------------------------------------------------------------------

    def add_maintenance(
        self, record: Record, create_expense: bool = False
    ) -> Tuple[Key, Optional[Key]]:
        """
        Add a maintenance record and, optionally, an expense linked to it.

        The two writes are independent: if the expense fails, the
        maintenance record stays and the raised error carries its id in
        committed_id so the caller can reconcile.
        """
        maintenance_id = self.add_record(MAINTENANCE, record)
        if not create_expense:
            return maintenance_id, None

        saved = self.store.read(MAINTENANCE, maintenance_id) or {}
        names = [s.get("name") for s in saved.get("services") or [] if s.get("name")]
        expense = {
            "date": saved.get("date"),
            "description": f"{names[0] if names else record_label(saved)} - maintenance",
            "amount": saved.get("totalCost") or 0,
            "linkedMaintenanceId": maintenance_id,
        }
        try:
            expense_id = self.add_record(EXPENSES, expense)
        except CarbookError as e:
            logger.warning(
                "maintenance/%s saved without its linked expense: %s", maintenance_id, e
            )
            raise type(e)(
                f"maintenance/{maintenance_id} saved but its expense was not: {e}",
                committed_id=maintenance_id,
            ) from e
        return maintenance_id, expense_id

    def linked_expense(self, maintenance_id: Key) -> Optional[Record]:
        matches = self.store.find(EXPENSES, "linkedMaintenanceId", maintenance_id)
        return matches[0] if matches else None

    def find_orphaned_expenses(self) -> List[Record]:
        """Expenses whose linkedMaintenanceId no longer resolves."""
        maintenance_ids = {r.get("id") for r in self.store.list(MAINTENANCE)}
        return [
            e
            for e in self.store.list(EXPENSES)
            if e.get("linkedMaintenanceId") is not None
            and e["linkedMaintenanceId"] not in maintenance_ids
        ]

    def mark_complete(
        self,
        record_id: Key,
        completed_on: Optional[str] = None,
        odometer: Optional[float] = None,
        next_service: Optional[Dict[str, Any]] = None,
        service_name: Optional[str] = None,
    ) -> Record:
        """
        Record that a due service was done.

        Sets lastCompleted, clears the fired trigger(s), optionally re-arms a
        new trigger and pushes the completion odometer into the profile.
        """
        record = self.store.read(MAINTENANCE, record_id)
        if record is None:
            raise NotFoundError(f"maintenance: no record with id {record_id!r}")
        if odometer is None:
            odometer = self.current_odometer
        completed_on = completed_on or date.today().isoformat()

        updated = complete_service(record, completed_on, odometer, next_service, service_name)
        self.update_record(MAINTENANCE, updated)
        self.raise_odometer(odometer)
        logger.info(
            "Completed %s on maintenance/%s at %s",
            service_name or "all services", record_id, odometer,
        )
        return updated

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    def get_running_total(self, kind: str = CAR_SAVINGS) -> RunningTotal:
        return get_current(self.store, kind)

    def get_breakdown(self, kind: str = CAR_SAVINGS) -> SavingsBreakdown:
        return breakdown_by_source(self.store, kind)

    def get_goal(self) -> float:
        return get_goal(self.store)

    def set_goal(self, amount: float) -> None:
        if not is_number(amount) or amount < 0:
            raise ValidationError(f"Invalid savings goal {amount!r}")
        set_goal(self.store, amount)

    def get_fuel_efficiency(self) -> List[EfficiencyInterval]:
        return calculate_efficiency(self.store.list(FUEL))

    def get_efficiency_summary(self) -> Optional[EfficiencySummary]:
        return average_efficiency(self.store.list(FUEL))

    def get_upcoming_services(self, today: Optional[date] = None) -> List[Reminder]:
        return collect_reminders(
            self.store.list(MAINTENANCE),
            self.current_odometer,
            today=today,
            thresholds=self.config.thresholds,
        )

    def get_report(self, kind: str, start=None, end=None, **filters):
        """Date-range report for a savings collection, fuel or maintenance."""
        return build_report(self.store, kind, start, end, **filters)

    def dashboard_summary(self, today: Optional[date] = None) -> DashboardSummary:
        fuel = self.store.list(FUEL)
        maintenance = self.store.list(MAINTENANCE)
        expenses = self.store.list(EXPENSES)
        return DashboardSummary(
            odometer=self.current_odometer,
            fuel_spend=sum_amounts({"amount": r.get("totalCost")} for r in fuel),
            maintenance_spend=sum_amounts({"amount": r.get("totalCost")} for r in maintenance),
            expense_total=sum_amounts(expenses),
            savings_total=self.get_running_total(CAR_SAVINGS).total,
            efficiency=average_efficiency(fuel),
            due_reminders=sum(1 for r in self.get_upcoming_services(today) if r.is_due),
            record_counts={name: len(self.store.list(name)) for name in BUNDLE_ARRAYS},
        )

    # -------------------------------------------------------------------------
    # Backup
    # -------------------------------------------------------------------------

    def export_all(self) -> Dict[str, Any]:
        return export_all(self.store)

    def import_all(self, bundle: Any) -> ImportReport:
        report = import_all(self.store, bundle)
        self.ensure_profile()
        return report
