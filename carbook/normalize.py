"""Fill in derived fields of fuel and maintenance records before they are stored."""

from decimal import Decimal
from typing import Any, Dict

from .calculations import calc_due_date, parse_date
from .errors import ValidationError


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_fuel(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Derive the missing one of liters, pricePerLiter and totalCost.

    totalCost = liters * pricePerLiter, rounded to cents; a derived liters
    figure is rounded to 2 decimals and a derived price to 3. Older records
    used 'price' and 'total'; those are renamed.
    """
    record = dict(record)
    if record.get("pricePerLiter") is None and "price" in record:
        record["pricePerLiter"] = record.pop("price")
    if record.get("totalCost") is None and "total" in record:
        record["totalCost"] = record.pop("total")

    liters = record.get("liters")
    price = record.get("pricePerLiter")
    total = record.get("totalCost")

    if liters is None and is_number(total) and is_number(price) and price > 0:
        record["liters"] = round(total / price, 2)
    elif total is None and is_number(liters) and is_number(price):
        record["totalCost"] = round(liters * price, 2)
    elif price is None and is_number(total) and is_number(liters) and liters > 0:
        record["pricePerLiter"] = round(total / liters, 3)
    return record


def normalize_maintenance(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Default services to a list, total their costs when no totalCost was
    given, and turn a nextServiceMonths interval into an absolute
    nextServiceDate counted from the record date.
    """
    record = dict(record)
    services = record.get("services")
    record["services"] = list(services) if services else []

    if record.get("totalCost") is None and record["services"]:
        costs = [s.get("cost") for s in record["services"] if isinstance(s, dict)]
        total = sum((Decimal(str(c)) for c in costs if is_number(c)), Decimal(0))
        record["totalCost"] = float(total)

    months = record.get("nextServiceMonths")
    if is_number(months) and months > 0 and not record.get("nextServiceDate"):
        try:
            start = parse_date(record.get("date"))
        except (TypeError, ValueError, OverflowError):
            raise ValidationError(
                f"Invalid maintenance date {record.get('date')!r}"
            ) from None
        if start is None:
            raise ValidationError("nextServiceMonths needs a maintenance date to count from")
        due = calc_due_date(start, months)
        if due is not None:
            record["nextServiceDate"] = due.isoformat()
    return record
