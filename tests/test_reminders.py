#!/usr/bin/env python3
"""Tests for the maintenance reminder engine."""

from datetime import date

import pytest

from carbook import (
    NotFoundError,
    ReminderMonitor,
    ReminderStatus,
    ReminderThresholds,
    TriggerType,
    ValidationError,
    classify,
    collect_reminders,
    complete_service,
)
from carbook.reminders import iter_triggers, record_label

TODAY = date(2025, 6, 1)


def oil_change(**kwargs):
    record = {
        "id": 1,
        "date": "2025-01-01",
        "odometer": 40000,
        "supplier": "Corner Garage",
        "services": [{"name": "Oil change", "cost": 65}],
    }
    record.update(kwargs)
    return record


# =============================================================================
# Thresholds and classification
# =============================================================================


class TestReminderThresholds:
    """Tests for ReminderThresholds."""

    def test_defaults(self):
        thresholds = ReminderThresholds()
        assert thresholds.for_trigger(TriggerType.DATE) == (7, 14)
        assert thresholds.for_trigger(TriggerType.ODOMETER) == (500, 1000)

    def test_from_options(self):
        thresholds = ReminderThresholds.from_options({"urgentDays": 3, "warningKm": 2000})
        assert thresholds.urgent_days == 3
        assert thresholds.warning_days == 14
        assert thresholds.warning_km == 2000

    def test_unknown_option_rejected(self):
        with pytest.raises(ValidationError):
            ReminderThresholds.from_options({"urgentWeeks": 1})

    def test_urgent_above_warning_rejected(self):
        with pytest.raises(ValidationError):
            ReminderThresholds(urgent_days=20, warning_days=14)


class TestClassify:
    """Tests for classify."""

    def test_date_tiers(self):
        assert classify(TriggerType.DATE, 3) == ReminderStatus.URGENT
        assert classify(TriggerType.DATE, 10) == ReminderStatus.WARNING
        assert classify(TriggerType.DATE, 20) == ReminderStatus.UPCOMING
        assert classify(TriggerType.DATE, -1) == ReminderStatus.OVERDUE

    def test_odometer_tiers(self):
        assert classify(TriggerType.ODOMETER, 400) == ReminderStatus.URGENT
        assert classify(TriggerType.ODOMETER, 800) == ReminderStatus.WARNING
        assert classify(TriggerType.ODOMETER, 5000) == ReminderStatus.UPCOMING
        assert classify(TriggerType.ODOMETER, 0) == ReminderStatus.OVERDUE

    def test_custom_thresholds(self):
        thresholds = ReminderThresholds(urgent_days=1, warning_days=2)
        assert classify(TriggerType.DATE, 3, thresholds) == ReminderStatus.UPCOMING


# =============================================================================
# Trigger discovery
# =============================================================================


class TestIterTriggers:
    """Tests for iter_triggers."""

    def test_service_line_trigger(self):
        record = oil_change(services=[
            {"name": "Oil change", "nextService": {"type": "odometer", "value": 50000}},
        ])
        assert list(iter_triggers(record)) == [("Oil change", None, "odometer", 50000)]

    def test_next_service_km_is_interval_from_record(self):
        triggers = list(iter_triggers(oil_change(nextServiceKm=10000)))
        assert triggers == [("Oil change", None, TriggerType.ODOMETER, 50000)]

    def test_next_service_date(self):
        triggers = list(iter_triggers(oil_change(nextServiceDate="2025-07-01")))
        assert triggers == [("Oil change", None, TriggerType.DATE, "2025-07-01")]

    def test_no_triggers(self):
        assert list(iter_triggers(oil_change())) == []


class TestRecordLabel:
    """Tests for record_label."""

    def test_joins_service_names(self):
        record = {"services": [{"name": "Oil change"}, {"name": "Rotation"}]}
        assert record_label(record) == "Oil change, Rotation"

    def test_falls_back_to_type(self):
        assert record_label({"type": "Inspection"}) == "Inspection"
        assert record_label({}) == "Service"


# =============================================================================
# collect_reminders
# =============================================================================


class TestCollectReminders:
    """Tests for collect_reminders."""

    def test_date_classification(self):
        records = [
            oil_change(id=1, nextServiceDate="2025-06-04"),   # 3 days
            oil_change(id=2, nextServiceDate="2025-06-11"),   # 10 days
            oil_change(id=3, nextServiceDate="2025-06-21"),   # 20 days
            oil_change(id=4, nextServiceDate="2025-05-20"),   # past
        ]
        reminders = collect_reminders(records, 40000, today=TODAY)
        by_id = {r.record_id: r for r in reminders}
        assert by_id[1].status == ReminderStatus.URGENT
        assert by_id[2].status == ReminderStatus.WARNING
        assert by_id[3].status == ReminderStatus.UPCOMING
        assert by_id[4].status == ReminderStatus.OVERDUE
        assert by_id[4].remaining == -12

    def test_odometer_against_profile(self):
        record = oil_change(nextServiceKm=10000)
        reminder = collect_reminders([record], 49600, today=TODAY)[0]
        assert reminder.trigger == TriggerType.ODOMETER
        assert reminder.due_km == 50000
        assert reminder.remaining == 400
        assert reminder.status == ReminderStatus.URGENT

    def test_sorted_most_urgent_first(self):
        records = [
            oil_change(id=1, nextServiceDate="2025-06-21"),
            oil_change(id=2, nextServiceDate="2025-05-01"),
            oil_change(id=3, nextServiceDate="2025-05-25"),
            oil_change(id=4, nextServiceDate="2025-06-03"),
        ]
        reminders = collect_reminders(records, 0, today=TODAY)
        assert [r.record_id for r in reminders] == [2, 3, 4, 1]

    def test_carries_record_details(self):
        record = oil_change(
            supplier={"name": "Dealer"},
            services=[{
                "name": "Brake fluid",
                "notes": "DOT4",
                "nextService": {"type": "date", "value": "2025-06-05T00:00:00.000Z"},
            }],
        )
        reminder = collect_reminders([record], 0, today=TODAY)[0]
        assert reminder.service_name == "Brake fluid"
        assert reminder.notes == "DOT4"
        assert reminder.supplier_name == "Dealer"
        assert reminder.original_date == "2025-01-01"
        assert reminder.original_odometer == 40000
        assert reminder.due_date == "2025-06-05"

    def test_bad_trigger_skipped_others_kept(self):
        record = oil_change(services=[
            {"name": "Wipers", "nextService": {"type": "date", "value": "whenever"}},
            {"name": "Tires", "nextService": {"type": "weather", "value": 3}},
            {"name": "Oil change", "nextService": {"type": "odometer", "value": 50000}},
        ])
        reminders = collect_reminders([record], 40000, today=TODAY)
        assert [r.service_name for r in reminders] == ["Oil change"]

    def test_empty(self):
        assert collect_reminders([], 1000, today=TODAY) == []


# =============================================================================
# complete_service
# =============================================================================


class TestCompleteService:
    """Tests for complete_service."""

    def test_whole_record_clears_triggers(self):
        record = oil_change(
            nextServiceDate="2025-07-01",
            nextServiceKm=10000,
            services=[{"name": "Oil change", "nextService": {"type": "odometer", "value": 50000}}],
        )
        updated = complete_service(record, "2025-06-01", 50100)
        assert updated["lastCompleted"] == {"date": "2025-06-01", "odometer": 50100}
        assert "nextServiceDate" not in updated
        assert "nextServiceKm" not in updated
        assert "nextService" not in updated["services"][0]
        assert list(iter_triggers(updated)) == []

    def test_does_not_mutate_input(self):
        record = oil_change(nextServiceDate="2025-07-01")
        complete_service(record, "2025-06-01", 50100)
        assert record["nextServiceDate"] == "2025-07-01"
        assert "lastCompleted" not in record

    def test_rearms_record_trigger(self):
        updated = complete_service(
            oil_change(nextServiceKm=10000), "2025-06-01", 50100,
            next_service={"type": "odometer", "value": 60100},
        )
        assert updated["nextService"] == {"type": "odometer", "value": 60100}
        assert list(iter_triggers(updated)) == [("Oil change", None, "odometer", 60100)]

    def test_single_service_line(self):
        record = oil_change(services=[
            {"name": "Oil change", "nextService": {"type": "odometer", "value": 50000}},
            {"name": "Rotation", "nextService": {"type": "odometer", "value": 45000}},
        ])
        updated = complete_service(
            record, "2025-06-01", 45100, service_name="rotation",
            next_service={"type": "odometer", "value": 55100},
        )
        rotation = updated["services"][1]
        assert rotation["lastCompleted"] == {"date": "2025-06-01", "odometer": 45100}
        assert rotation["nextService"]["value"] == 55100
        assert updated["services"][0]["nextService"]["value"] == 50000
        assert "lastCompleted" not in updated

    def test_unknown_service_name(self):
        with pytest.raises(NotFoundError):
            complete_service(oil_change(), "2025-06-01", 45100, service_name="Muffler")

    def test_invalid_next_service(self):
        with pytest.raises(ValidationError):
            complete_service(
                oil_change(), "2025-06-01", 45100,
                next_service={"type": "odometer", "value": "soon"},
            )


# =============================================================================
# ReminderMonitor
# =============================================================================


class TestReminderMonitor:
    """Tests for ReminderMonitor."""

    def test_refreshes_each_interval(self):
        seen = []
        sleeps = []
        monitor = ReminderMonitor(
            scan=lambda: ["r"],
            callback=seen.append,
            interval=30,
            sleep=sleeps.append,
        )
        monitor.run(iterations=3)
        assert seen == [["r"], ["r"], ["r"]]
        assert sleeps == [30, 30]

    def test_stop_from_callback(self):
        calls = []

        def callback(reminders):
            calls.append(reminders)
            monitor.stop()

        monitor = ReminderMonitor(scan=list, callback=callback, sleep=lambda s: None)
        monitor.run()
        assert calls == [[]]

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            ReminderMonitor(scan=list, callback=print, interval=0)
