"""Collection definitions: key kind, indexed fields and unique fields."""

from dataclasses import dataclass
from typing import Dict, Tuple

from .errors import NotFoundError

PROFILE_ID = "profile"
GOAL_SETTING = "carGoal"
UI_SETTING = "ui"
LAST_FUEL_PRICE_SETTING = "lastFuelPrice"

SAVINGS = "savings"
CAR_SAVINGS = "carSavings"
MAINTENANCE = "maintenance"
FUEL = "fuel"
PARTS = "parts"
SUPPLIERS = "suppliers"
EXPENSES = "expenses"
PROFILE = "profile"
SETTINGS = "settings"
RUNNING_TOTALS = "runningTotals"

# Collections whose amounts feed a cached running total
SAVINGS_KINDS = (SAVINGS, CAR_SAVINGS)


@dataclass(frozen=True)
class Collection:
    """A named group of records of one entity type."""

    name: str
    auto_increment: bool = True
    indexes: Tuple[str, ...] = ()
    unique: Tuple[str, ...] = ()

    def is_indexed(self, field: str) -> bool:
        return field in self.indexes


COLLECTIONS: Dict[str, Collection] = {
    c.name: c
    for c in (
        Collection(PROFILE, auto_increment=False),
        Collection(SETTINGS, auto_increment=False),
        Collection(RUNNING_TOTALS, auto_increment=False),
        Collection(SAVINGS, indexes=("date", "createdAt", "description")),
        Collection(CAR_SAVINGS, indexes=("date", "createdAt", "description")),
        Collection(MAINTENANCE, indexes=("date", "odometer", "supplier")),
        Collection(FUEL, indexes=("date", "odometer", "createdAt")),
        Collection(PARTS, indexes=("sku", "supplier"), unique=("sku",)),
        Collection(SUPPLIERS, indexes=("name", "rating"), unique=("name",)),
        Collection(EXPENSES, indexes=("date", "linkedMaintenanceId")),
    )
}

# Collections carried as arrays in a backup bundle, in export order
BUNDLE_ARRAYS = (
    SETTINGS,
    SAVINGS,
    CAR_SAVINGS,
    MAINTENANCE,
    FUEL,
    PARTS,
    SUPPLIERS,
    EXPENSES,
)

# Older bundles used different top-level names for some collections
BUNDLE_ALIASES = {"fuelLogs": FUEL}


def get_collection(name: str) -> Collection:
    """Look up a collection definition by name."""
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise NotFoundError(f"Unknown collection '{name}'") from None
