#!/usr/bin/env python3
"""Tests for fuel efficiency calculations."""

from carbook import average_efficiency, calculate_efficiency


class TestCalculateEfficiency:
    """Tests for calculate_efficiency."""

    def test_single_interval(self):
        """400 km on 30 liters is 13.33 km/l and 7.5 l/100km."""
        entries = [
            {"date": "2025-01-01", "odometer": 1000, "liters": 40},
            {"date": "2025-01-15", "odometer": 1400, "liters": 30},
        ]
        intervals = calculate_efficiency(entries)
        assert len(intervals) == 1
        assert intervals[0].distance == 400
        assert intervals[0].liters == 30
        assert intervals[0].km_per_liter == 13.33
        assert intervals[0].liters_per_100km == 7.5
        assert intervals[0].date == "2025-01-15"

    def test_input_order_does_not_matter(self):
        entries = [
            {"date": "2025-02-01", "odometer": 1800, "liters": 40},
            {"date": "2025-01-01", "odometer": 1000, "liters": 40},
            {"date": "2025-01-15", "odometer": 1400, "liters": 40},
        ]
        intervals = calculate_efficiency(entries)
        assert [i.date for i in intervals] == ["2025-01-15", "2025-02-01"]
        assert all(i.km_per_liter == 10 for i in intervals)

    def test_fewer_than_two_entries(self):
        assert calculate_efficiency([]) == []
        assert calculate_efficiency([{"odometer": 1000, "liters": 30}]) == []

    def test_no_forward_distance_skipped(self):
        """A reading equal to the previous one yields no interval."""
        entries = [
            {"odometer": 1000, "liters": 40},
            {"odometer": 1000, "liters": 30},
            {"odometer": 1500, "liters": 50},
        ]
        intervals = calculate_efficiency(entries)
        assert len(intervals) == 1
        assert intervals[0].km_per_liter == 10

    def test_no_fuel_skipped(self):
        entries = [
            {"odometer": 1000, "liters": 40},
            {"odometer": 1400, "liters": 0},
            {"odometer": 1800},
        ]
        assert calculate_efficiency(entries) == []

    def test_entries_without_odometer_ignored(self):
        entries = [
            {"odometer": 1000, "liters": 40},
            {"liters": 30},
            {"odometer": 1500, "liters": 50},
        ]
        assert len(calculate_efficiency(entries)) == 1


class TestAverageEfficiency:
    """Tests for average_efficiency."""

    def test_no_data_returns_none(self):
        assert average_efficiency([]) is None
        assert average_efficiency([{"odometer": 1000, "liters": 30}]) is None

    def test_mean_of_intervals(self):
        entries = [
            {"odometer": 1000, "liters": 40},
            {"odometer": 1400, "liters": 40},  # 10 km/l
            {"odometer": 2000, "liters": 40},  # 15 km/l
        ]
        summary = average_efficiency(entries)
        assert summary.km_per_liter == 12.5
        assert summary.liters_per_100km == 8.0
        assert summary.intervals == 2
        assert summary.total_distance == 1000
        assert summary.total_liters == 80
