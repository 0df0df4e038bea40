"""
Personal vehicle expense tracking.

This package keeps every record on local disk and derives summaries from it:
- RecordStore: CRUD over named collections (fuel, maintenance, savings, ...)
- totals: cached running totals and the savings breakdown
- efficiency: fuel consumption from odometer deltas
- reminders: maintenance triggers classified by urgency
- reports: date-range summaries of savings, fuel and maintenance
- bundle: backup export/import
- Tracker: the facade the CLI and web app use
"""

from .errors import CarbookError, NotFoundError, ValidationError, StorageError
from .status import ReminderStatus, TriggerType
from .reminder import Reminder
from .calculations import calc_due_date, calc_due_km, check_status, days_until, parse_date
from .store import RecordStore
from .totals import RunningTotal, SourceShare, SavingsBreakdown, recompute, get_current, breakdown_by_source
from .efficiency import EfficiencyInterval, EfficiencySummary, calculate_efficiency, average_efficiency
from .reminders import ReminderThresholds, ReminderMonitor, classify, collect_reminders, complete_service
from .reports import FuelReport, MaintenanceReport, SavingsReport, build_report
from .bundle import ImportReport, export_all, import_all, bundle_to_csv, export_filename
from .config import Config, load_config
from .tracker import Tracker, DashboardSummary

__version__ = "1.0.0"

__all__ = [
    "CarbookError",
    "NotFoundError",
    "ValidationError",
    "StorageError",
    "ReminderStatus",
    "TriggerType",
    "Reminder",
    "calc_due_date",
    "calc_due_km",
    "check_status",
    "days_until",
    "parse_date",
    "RecordStore",
    "RunningTotal",
    "SourceShare",
    "SavingsBreakdown",
    "recompute",
    "get_current",
    "breakdown_by_source",
    "EfficiencyInterval",
    "EfficiencySummary",
    "calculate_efficiency",
    "average_efficiency",
    "ReminderThresholds",
    "ReminderMonitor",
    "classify",
    "collect_reminders",
    "complete_service",
    "FuelReport",
    "MaintenanceReport",
    "SavingsReport",
    "build_report",
    "ImportReport",
    "export_all",
    "import_all",
    "bundle_to_csv",
    "export_filename",
    "Config",
    "load_config",
    "Tracker",
    "DashboardSummary",
]
