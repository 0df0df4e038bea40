"""Status enum for reminder urgency tiers."""

from enum import Enum


class ReminderStatus(Enum):
    """Reminder urgency tiers. Lower value = more urgent."""

    OVERDUE = 1
    URGENT = 2
    WARNING = 3
    UPCOMING = 4

    @property
    def label(self) -> str:
        return self.name.lower()


class TriggerType(Enum):
    """What a maintenance trigger is measured in."""

    DATE = "date"
    ODOMETER = "odometer"
