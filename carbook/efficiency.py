"""Fuel efficiency from consecutive odometer/volume readings."""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


@dataclass
class EfficiencyInterval:
    """Consumption between two consecutive fill-ups."""

    date: Optional[str]
    distance: float
    liters: float
    km_per_liter: float
    liters_per_100km: float


@dataclass
class EfficiencySummary:
    """Average consumption across all valid intervals."""

    km_per_liter: float
    liters_per_100km: float
    intervals: int
    total_distance: float
    total_liters: float


def calculate_efficiency(entries: Iterable[Dict[str, Any]]) -> List[EfficiencyInterval]:
    """
    Per-interval efficiency from fuel log entries in any order.

    Entries are sorted by odometer; each consecutive pair yields an interval
    keyed by the later entry's date. Pairs with no forward distance or no
    fuel are skipped. Fewer than two entries give an empty list.
    """
    readings = sorted(
        (e for e in entries if e.get("odometer") is not None),
        key=lambda e: e["odometer"],
    )
    intervals = []
    for prev, curr in zip(readings, readings[1:]):
        distance = curr["odometer"] - prev["odometer"]
        liters = curr.get("liters") or 0
        if distance <= 0 or liters <= 0:
            continue
        km_per_liter = distance / liters
        intervals.append(
            EfficiencyInterval(
                date=curr.get("date"),
                distance=distance,
                liters=liters,
                km_per_liter=round(km_per_liter, 2),
                liters_per_100km=round(100 / km_per_liter, 2),
            )
        )
    return intervals


def average_efficiency(entries: Iterable[Dict[str, Any]]) -> Optional[EfficiencySummary]:
    """Mean km/l over all valid intervals, converted to l/100km; None without data."""
    intervals = calculate_efficiency(entries)
    if not intervals:
        return None
    # Mean of unrounded ratios
    ratios = [i.distance / i.liters for i in intervals]
    mean = sum(ratios) / len(ratios)
    return EfficiencySummary(
        km_per_liter=round(mean, 2),
        liters_per_100km=round(100 / mean, 2),
        intervals=len(intervals),
        total_distance=sum(i.distance for i in intervals),
        total_liters=sum(i.liters for i in intervals),
    )
