"""Date-range reports over savings, fuel and maintenance records."""

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .calculations import parse_date
from .catalog import CAR_SAVINGS, FUEL, MAINTENANCE, SAVINGS_KINDS
from .efficiency import average_efficiency
from .errors import NotFoundError, ValidationError
from .normalize import is_number
from .reminders import supplier_name
from .store import Record, RecordStore
from .totals import sum_amounts

logger = logging.getLogger(__name__)

REPORT_KINDS = SAVINGS_KINDS + (FUEL, MAINTENANCE)


@dataclass
class SavingsReport:
    """Savings entries in a date range and their total."""

    kind: str
    start: Optional[str]
    end: Optional[str]
    total: float
    count: int
    entries: List[Record] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FuelReport:
    """Fill-ups in a date range with cost, volume and consumption."""

    start: Optional[str]
    end: Optional[str]
    total_cost: float
    total_liters: float
    average_price: float
    liters_per_100km: Optional[float]
    count: int
    entries: List[Record] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MaintenanceReport:
    """Maintenance visits in a date range."""

    start: Optional[str]
    end: Optional[str]
    total_cost: float
    visits: int
    service_count: int
    supplier_count: int
    entries: List[Record] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _parse_bound(value: Any, which: str) -> Optional[date]:
    try:
        return parse_date(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"Invalid {which} date {value!r}") from None


def _iso(day: Optional[date]) -> Optional[str]:
    return day.isoformat() if day else None


def entries_between(
    store: RecordStore, collection: str, start: Any = None, end: Any = None
) -> List[Record]:
    """
    Records of a dated collection from start to end (both inclusive), newest first.

    Without bounds every record is returned, undated ones last. With either
    bound, undated records are left out.
    """
    start_date = _parse_bound(start, "start")
    end_date = _parse_bound(end, "end")
    if start_date and end_date and start_date > end_date:
        raise ValidationError(f"Start date {start_date} is after end date {end_date}")
    if start_date is None and end_date is None:
        return store.list(collection, order_by="date")

    # Stored dates may carry a time part, so the end bound is the next day, exclusive
    records = store.range(
        collection,
        "date",
        lower=_iso(start_date),
        upper=_iso(end_date + timedelta(days=1)) if end_date else None,
        upper_open=True,
    )
    records.reverse()
    return records


def savings_report(
    store: RecordStore, kind: str = CAR_SAVINGS, start: Any = None, end: Any = None
) -> SavingsReport:
    if kind not in SAVINGS_KINDS:
        raise NotFoundError(f"No savings report for '{kind}'")
    entries = entries_between(store, kind, start, end)
    return SavingsReport(
        kind=kind,
        start=_iso(_parse_bound(start, "start")),
        end=_iso(_parse_bound(end, "end")),
        total=sum_amounts(entries),
        count=len(entries),
        entries=entries,
    )


def fuel_report(
    store: RecordStore,
    start: Any = None,
    end: Any = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> FuelReport:
    """
    Fuel cost and volume over a date range, optionally within a price band.

    With a price filter, fill-ups without a price per liter are left out.
    Consumption is the average over the valid intervals inside the range.
    """
    for name, bound in (("minimum", min_price), ("maximum", max_price)):
        if bound is not None and not is_number(bound):
            raise ValidationError(f"Invalid {name} price {bound!r}")

    entries = entries_between(store, FUEL, start, end)
    if min_price is not None or max_price is not None:
        entries = [
            e for e in entries
            if is_number(e.get("pricePerLiter"))
            and (min_price is None or e["pricePerLiter"] >= min_price)
            and (max_price is None or e["pricePerLiter"] <= max_price)
        ]

    total_cost = sum_amounts({"amount": e.get("totalCost")} for e in entries)
    total_liters = sum_amounts({"amount": e.get("liters")} for e in entries)
    efficiency = average_efficiency(entries)
    return FuelReport(
        start=_iso(_parse_bound(start, "start")),
        end=_iso(_parse_bound(end, "end")),
        total_cost=total_cost,
        total_liters=total_liters,
        average_price=round(total_cost / total_liters, 3) if total_liters else 0.0,
        liters_per_100km=efficiency.liters_per_100km if efficiency else None,
        count=len(entries),
        entries=entries,
    )


def maintenance_report(
    store: RecordStore,
    start: Any = None,
    end: Any = None,
    supplier: Optional[str] = None,
    service_type: Optional[str] = None,
) -> MaintenanceReport:
    """Maintenance over a date range, filtered by supplier and service name substrings."""
    entries = entries_between(store, MAINTENANCE, start, end)
    if supplier:
        needle = supplier.lower()
        entries = [e for e in entries if needle in (supplier_name(e) or "").lower()]
    if service_type:
        needle = service_type.lower()
        entries = [
            e for e in entries
            if any(needle in str(s.get("name") or "").lower() for s in e.get("services") or [])
        ]

    suppliers = {supplier_name(e) for e in entries if supplier_name(e)}
    return MaintenanceReport(
        start=_iso(_parse_bound(start, "start")),
        end=_iso(_parse_bound(end, "end")),
        total_cost=sum_amounts({"amount": e.get("totalCost")} for e in entries),
        visits=len(entries),
        service_count=sum(len(e.get("services") or []) for e in entries),
        supplier_count=len(suppliers),
        entries=entries,
    )


def build_report(
    store: RecordStore,
    kind: str,
    start: Any = None,
    end: Any = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    supplier: Optional[str] = None,
    service_type: Optional[str] = None,
):
    """Build the report for kind; filters that do not apply to it are ignored."""
    if kind in SAVINGS_KINDS:
        report = savings_report(store, kind, start, end)
    elif kind == FUEL:
        report = fuel_report(store, start, end, min_price, max_price)
    elif kind == MAINTENANCE:
        report = maintenance_report(store, start, end, supplier, service_type)
    else:
        raise NotFoundError(f"No report for '{kind}' (choose from {', '.join(REPORT_KINDS)})")
    logger.debug("Built %s report: %d record(s)", kind, len(report.entries))
    return report
