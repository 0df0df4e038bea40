"""Reminder dataclass for a classified maintenance trigger."""

from dataclasses import dataclass
from typing import Optional

from .status import ReminderStatus, TriggerType


@dataclass
class Reminder:
    """One due trigger of a maintenance record, classified by urgency."""

    record_id: Optional[int]
    service_name: str
    trigger: TriggerType
    status: ReminderStatus
    remaining: float
    due_date: Optional[str] = None
    due_km: Optional[float] = None
    original_date: Optional[str] = None
    original_odometer: Optional[float] = None
    supplier_name: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_due(self) -> bool:
        return self.status in (ReminderStatus.OVERDUE, ReminderStatus.URGENT)

    @property
    def display_remaining(self) -> str:
        unit = "days" if self.trigger == TriggerType.DATE else "km"
        return f"{abs(self.remaining):,.0f} {unit}"

    def to_dict(self) -> dict:
        return {
            "id": self.record_id,
            "serviceName": self.service_name,
            "type": self.trigger.value,
            "status": self.status.label,
            "remaining": self.remaining,
            "dueDate": self.due_date,
            "dueKm": self.due_km,
            "originalDate": self.original_date,
            "originalOdometer": self.original_odometer,
            "supplierName": self.supplier_name,
            "notes": self.notes,
        }
