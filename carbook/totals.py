"""Running totals and savings breakdown over the savings collections."""

import logging
from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from .catalog import CAR_SAVINGS, GOAL_SETTING, RUNNING_TOTALS, SAVINGS_KINDS, SETTINGS
from .errors import NotFoundError
from .store import Record, RecordStore, now_iso

logger = logging.getLogger(__name__)


@dataclass
class RunningTotal:
    """Cached sum of a savings collection."""

    id: str
    total: float = 0.0
    record_count: int = 0
    last_updated: str = field(default_factory=now_iso)

    def to_record(self) -> Record:
        return {
            "id": self.id,
            "total": self.total,
            "lastUpdated": self.last_updated,
            "recordCount": self.record_count,
        }

    @classmethod
    def from_record(cls, record: Record) -> "RunningTotal":
        return cls(
            id=record["id"],
            total=record.get("total", 0.0),
            record_count=record.get("recordCount", 0),
            last_updated=record.get("lastUpdated") or now_iso(),
        )


@dataclass
class SourceShare:
    """One description bucket of the savings breakdown."""

    source: str
    amount: float
    percentage: float


@dataclass
class SavingsBreakdown:
    """Savings grouped by source, with progress toward the goal."""

    total: float
    goal: float
    progress: float
    sources: List[SourceShare]

    def to_dict(self) -> Dict:
        return asdict(self)


def _check_kind(kind: str) -> None:
    if kind not in SAVINGS_KINDS:
        raise NotFoundError(f"No running total for '{kind}'")


def sum_amounts(entries: Iterable[Record]) -> float:
    """Exact decimal sum of entry amounts (missing amounts count as 0)."""
    total = sum((Decimal(str(e.get("amount") or 0)) for e in entries), Decimal(0))
    return float(total)


def recompute(store: RecordStore, kind: str) -> RunningTotal:
    """Rebuild and cache the running total for a savings collection."""
    _check_kind(kind)
    entries = store.list(kind)
    created = [e["createdAt"] for e in entries if e.get("createdAt")]
    running = RunningTotal(
        id=kind,
        total=sum_amounts(entries),
        record_count=len(entries),
        last_updated=max(created) if created else now_iso(),
    )
    store.update(RUNNING_TOTALS, running.to_record())
    logger.debug("Recomputed %s total: %s over %d entries", kind, running.total, running.record_count)
    return running


def get_current(store: RecordStore, kind: str) -> RunningTotal:
    """Last cached total, or a zero total when nothing was cached yet."""
    _check_kind(kind)
    record = store.read(RUNNING_TOTALS, kind)
    if record is None:
        return RunningTotal(id=kind)
    return RunningTotal.from_record(record)


def get_goal(store: RecordStore) -> float:
    record = store.read(SETTINGS, GOAL_SETTING)
    return float(record.get("amount") or 0) if record else 0.0


def set_goal(store: RecordStore, amount: float) -> None:
    store.update(SETTINGS, {"id": GOAL_SETTING, "amount": float(amount)})
    logger.info("Savings goal set to %.2f", amount)


def breakdown_by_source(
    store: RecordStore, kind: str = CAR_SAVINGS, goal: Optional[float] = None
) -> SavingsBreakdown:
    """
    Group savings by description and compute each bucket's share.

    Percentages are relative to the grand total and are all 0 when the
    total is 0. Progress toward the goal is capped at 100%.
    """
    _check_kind(kind)
    entries = store.list(kind)
    buckets: Dict[str, List[Record]] = {}
    for entry in entries:
        source = (entry.get("description") or "").strip() or "Unknown"
        buckets.setdefault(source, []).append(entry)

    total = sum_amounts(entries)
    sources = []
    for source, items in buckets.items():
        amount = sum_amounts(items)
        percentage = round(amount / total * 100, 2) if total else 0.0
        sources.append(SourceShare(source=source, amount=amount, percentage=percentage))
    sources.sort(key=lambda s: s.amount, reverse=True)

    if goal is None:
        goal = get_goal(store)
    progress = min(total / goal * 100, 100.0) if goal > 0 else 0.0

    return SavingsBreakdown(total=total, goal=goal, progress=round(progress, 2), sources=sources)
