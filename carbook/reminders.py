"""
Maintenance reminder engine.

Scans maintenance records for "next due" triggers and classifies each one
by how much is left before it fires:

- remaining <= 0                  -> OVERDUE
- remaining <= urgent threshold   -> URGENT
- remaining <= warning threshold  -> WARNING
- otherwise                       -> UPCOMING

Date triggers count calendar days, odometer triggers count km against the
profile odometer. A record can carry several triggers; each becomes its
own reminder.
"""

import copy
import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .calculations import calc_due_km, check_status, days_until, parse_date
from .errors import NotFoundError, ValidationError
from .reminder import Reminder
from .status import ReminderStatus, TriggerType

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_SECONDS = 60.0


@dataclass(frozen=True)
class ReminderThresholds:
    """Urgent/warning cut-offs per trigger type."""

    urgent_days: float = 7
    warning_days: float = 14
    urgent_km: float = 500
    warning_km: float = 1000

    def __post_init__(self):
        if self.urgent_days > self.warning_days:
            raise ValidationError("urgentDays must not exceed warningDays")
        if self.urgent_km > self.warning_km:
            raise ValidationError("urgentKm must not exceed warningKm")

    @classmethod
    def from_options(cls, options: Optional[Dict[str, Any]]) -> "ReminderThresholds":
        """Build from {urgentDays, warningDays, urgentKm, warningKm}; missing keys keep defaults."""
        options = options or {}
        unknown = set(options) - {"urgentDays", "warningDays", "urgentKm", "warningKm"}
        if unknown:
            raise ValidationError(f"Unknown reminder options: {', '.join(sorted(unknown))}")
        defaults = cls()
        return cls(
            urgent_days=options.get("urgentDays", defaults.urgent_days),
            warning_days=options.get("warningDays", defaults.warning_days),
            urgent_km=options.get("urgentKm", defaults.urgent_km),
            warning_km=options.get("warningKm", defaults.warning_km),
        )

    def for_trigger(self, trigger: TriggerType) -> Tuple[float, float]:
        if trigger == TriggerType.DATE:
            return self.urgent_days, self.warning_days
        return self.urgent_km, self.warning_km


def classify(
    trigger: TriggerType, remaining: float, thresholds: Optional[ReminderThresholds] = None
) -> ReminderStatus:
    """Urgency tier for a trigger with the given days/km remaining."""
    urgent, warning = (thresholds or ReminderThresholds()).for_trigger(trigger)
    return check_status(remaining, urgent, warning)


def supplier_name(record: Dict[str, Any]) -> Optional[str]:
    supplier = record.get("supplier")
    if isinstance(supplier, dict):
        return supplier.get("name")
    return supplier or None


def record_label(record: Dict[str, Any]) -> str:
    """Display name for triggers attached to the record as a whole."""
    names = [s.get("name") for s in record.get("services") or [] if s.get("name")]
    if names:
        return ", ".join(names)
    return record.get("type") or "Service"


def iter_triggers(record: Dict[str, Any]) -> Iterator[Tuple[str, Optional[str], Any, Any]]:
    """
    Yield (service name, notes, trigger type, due value) for every trigger.

    The trigger type is passed through as stored ("date"/"odometer") and
    checked by the caller, so one bad trigger does not hide the others.

    Sources: each service line's nextService, the record's own nextService
    (re-armed by completion), its absolute nextServiceDate, and its
    nextServiceKm interval counted from the record odometer.
    """
    for service in record.get("services") or []:
        next_service = service.get("nextService")
        if next_service:
            yield (
                service.get("name") or "Service",
                service.get("notes"),
                next_service.get("type"),
                next_service.get("value"),
            )

    label = record_label(record)
    next_service = record.get("nextService")
    if next_service:
        yield label, None, next_service.get("type"), next_service.get("value")
    if record.get("nextServiceDate"):
        yield label, None, TriggerType.DATE, record["nextServiceDate"]
    if record.get("nextServiceKm"):
        due_km = calc_due_km(record.get("odometer"), record["nextServiceKm"])
        yield label, None, TriggerType.ODOMETER, due_km


def build_reminder(
    record: Dict[str, Any],
    name: str,
    notes: Optional[str],
    trigger: TriggerType,
    value: Any,
    current_odometer: float,
    today: date,
    thresholds: ReminderThresholds,
) -> Reminder:
    """Classify one trigger; raises ValueError/TypeError for unusable values."""
    due_date = None
    due_km = None
    if trigger == TriggerType.DATE:
        due = parse_date(value)
        if due is None:
            raise ValueError("empty due date")
        remaining = days_until(due, today)
        due_date = due.isoformat()
    else:
        due_km = float(value)
        remaining = due_km - current_odometer

    return Reminder(
        record_id=record.get("id"),
        service_name=name,
        trigger=trigger,
        status=classify(trigger, remaining, thresholds),
        remaining=remaining,
        due_date=due_date,
        due_km=due_km,
        original_date=record.get("date"),
        original_odometer=record.get("odometer"),
        supplier_name=supplier_name(record),
        notes=notes,
    )


def collect_reminders(
    records: List[Dict[str, Any]],
    current_odometer: float,
    today: Optional[date] = None,
    thresholds: Optional[ReminderThresholds] = None,
) -> List[Reminder]:
    """
    All reminders for the given maintenance records, most urgent first.

    Sorted by status (overdue, urgent, warning, upcoming), then by
    ascending remaining days/km. Triggers with unusable values are skipped.
    """
    today = today or date.today()
    thresholds = thresholds or ReminderThresholds()
    current_odometer = current_odometer or 0

    reminders = []
    for record in records:
        for name, notes, kind, value in iter_triggers(record):
            try:
                trigger = TriggerType(kind)
                reminders.append(
                    build_reminder(
                        record, name, notes, trigger, value, current_odometer, today, thresholds
                    )
                )
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(
                    "Skipping %s trigger on maintenance/%s: %r (%s)",
                    kind, record.get("id"), value, e,
                )

    reminders.sort(key=lambda r: (r.status.value, r.remaining))
    return reminders


def check_next_service(next_service: Optional[Dict[str, Any]]) -> None:
    """Reject a re-armed trigger that could never be evaluated."""
    if next_service is None:
        return
    try:
        trigger = TriggerType(next_service.get("type"))
        value = next_service.get("value")
        if trigger == TriggerType.DATE:
            if parse_date(value) is None:
                raise ValueError("missing date")
        else:
            float(value)
    except (AttributeError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid next service {next_service!r}: {e}") from None


def complete_service(
    record: Dict[str, Any],
    completed_on: str,
    odometer: float,
    next_service: Optional[Dict[str, Any]] = None,
    service_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Return a copy of record with a completion applied.

    With service_name, only that service line is completed: it gets
    lastCompleted, loses its trigger and optionally gets next_service.
    Without it, the whole record is completed: every trigger on it is
    cleared and next_service, if any, becomes the record's own trigger.
    """
    check_next_service(next_service)
    updated = copy.deepcopy(record)
    completion = {"date": completed_on, "odometer": odometer}

    if service_name is not None:
        for service in updated.get("services") or []:
            if (service.get("name") or "").lower() == service_name.lower():
                break
        else:
            raise NotFoundError(
                f"maintenance/{record.get('id')} has no service named '{service_name}'"
            )
        service["lastCompleted"] = completion
        service.pop("nextService", None)
        if next_service:
            service["nextService"] = dict(next_service)
        return updated

    updated["lastCompleted"] = completion
    for key in ("nextService", "nextServiceDate", "nextServiceKm", "nextServiceMonths"):
        updated.pop(key, None)
    for service in updated.get("services") or []:
        service.pop("nextService", None)
    if next_service:
        updated["nextService"] = dict(next_service)
    return updated


class ReminderMonitor:
    """
    Fixed-interval rescan of reminders.

    Date-based reminders change as the clock moves even when nothing is
    written, so the monitor re-evaluates on a timer and hands each fresh
    list to the callback.
    """

    def __init__(
        self,
        scan: Callable[[], List[Reminder]],
        callback: Callable[[List[Reminder]], None],
        interval: float = DEFAULT_REFRESH_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if interval <= 0:
            raise ValidationError("Refresh interval must be positive")
        self.scan = scan
        self.callback = callback
        self.interval = interval
        self._sleep = sleep
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True

    def refresh(self) -> List[Reminder]:
        reminders = self.scan()
        self.callback(reminders)
        return reminders

    def run(self, iterations: Optional[int] = None) -> None:
        """Refresh now and then every interval, until stopped or iterations ran."""
        count = 0
        while not self._stopped:
            self.refresh()
            count += 1
            if iterations is not None and count >= iterations:
                break
            self._sleep(self.interval)
