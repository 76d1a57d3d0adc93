"""
Unit tests for NASA FIRMS hotspot parsing and classification.
"""
from datetime import datetime, timezone

import pytest

from carbono.domain.models import Severity
from carbono.services.domain.firms_parser import (
    calculate_severity,
    deduplicate_alerts,
    filter_by_confidence,
    filter_by_department,
    filter_by_frp,
    get_alert_stats,
    group_by_department,
    normalize_confidence,
    parse_firms_csv,
)


# ============================================================
# Parsing Tests
# ============================================================

class TestParseFirmsCsv:
    """Tests for CSV parsing."""

    def test_parses_rows(self, firms_csv):
        alerts = parse_firms_csv(firms_csv)

        assert len(alerts) == 3
        first = alerts[0]
        assert first.latitude == pytest.approx(-17.78)
        assert first.longitude == pytest.approx(-63.18)
        assert first.brightness == pytest.approx(345.2)
        assert first.confidence == 90.0
        assert first.frp == pytest.approx(120.5)
        assert first.day_night == "DAY"
        assert first.department == "Santa Cruz"
        assert first.acquisition_date == datetime(2024, 8, 20, 17, 42, tzinfo=timezone.utc)

    def test_night_and_department(self, firms_csv):
        last = parse_firms_csv(firms_csv)[-1]

        assert last.day_night == "NIGHT"
        assert last.department == "Beni"
        assert last.acquisition_date.hour == 5
        assert last.acquisition_date.minute == 30

    def test_empty_body(self):
        assert parse_firms_csv("") == []
        assert parse_firms_csv("   \n") == []

    def test_header_only(self):
        assert parse_firms_csv("latitude,longitude,acq_date,acq_time\n") == []

    def test_rows_without_coordinates_or_time_are_skipped(self):
        csv_text = (
            "latitude,longitude,brightness,acq_date,acq_time,confidence,frp,daynight\n"
            ",-63.18,320,2024-08-20,1742,80,10,D\n"
            "-17.78,-63.18,320,,1742,80,10,D\n"
            "-17.78,-63.18,320,2024-08-20,1742,80,10,D\n"
        )

        alerts = parse_firms_csv(csv_text)

        assert len(alerts) == 1

    def test_malformed_numbers_are_skipped(self):
        csv_text = (
            "latitude,longitude,brightness,acq_date,acq_time,confidence,frp,daynight\n"
            "abc,-63.18,320,2024-08-20,1742,80,10,D\n"
            "-17.78,-63.18,320,2024-08-20,1742,80,10,D\n"
        )

        assert len(parse_firms_csv(csv_text)) == 1

    def test_modis_brightness_column(self):
        csv_text = (
            "latitude,longitude,brightness,acq_date,acq_time,satellite,instrument,confidence,frp,daynight\n"
            "-17.78,-63.18,320.5,2024-08-20,0915,Terra,MODIS,77,55.0,D\n"
        )

        alert = parse_firms_csv(csv_text)[0]

        assert alert.brightness == pytest.approx(320.5)
        assert alert.instrument == "MODIS"
        assert alert.confidence == 77.0


# ============================================================
# Classification Tests
# ============================================================

class TestClassification:
    """Tests for confidence normalisation and severity."""

    @pytest.mark.parametrize(
        "raw, expected",
        [("low", 30), ("l", 30), ("nominal", 60), ("N", 60), ("high", 90), ("h", 90), ("73", 73), ("", 0), (None, 0)],
    )
    def test_normalize_confidence(self, raw, expected):
        assert normalize_confidence(raw) == expected

    @pytest.mark.parametrize(
        "confidence, frp, severity",
        [
            (80, 100, Severity.HIGH),
            (95, 99.9, Severity.MEDIUM),
            (50, 0, Severity.MEDIUM),
            (10, 50, Severity.MEDIUM),
            (49, 49, Severity.LOW),
        ],
    )
    def test_severity(self, confidence, frp, severity):
        assert calculate_severity(confidence, frp) == severity

    def test_parsed_severities(self, firms_csv):
        alerts = parse_firms_csv(firms_csv)

        assert [a.severity for a in alerts] == [Severity.HIGH, Severity.MEDIUM, Severity.LOW]


# ============================================================
# Deduplication and Filter Tests
# ============================================================

class TestDeduplication:
    """Tests for spatial deduplication."""

    def test_nearby_hotspots_collapse_to_highest_confidence(self, firms_csv):
        alerts = parse_firms_csv(firms_csv)

        deduped = deduplicate_alerts(alerts)

        assert len(deduped) == 2
        assert deduped[0].confidence == 90.0
        assert deduped[1].department == "Beni"

    def test_highest_confidence_wins_regardless_of_order(self, firms_csv):
        alerts = list(reversed(parse_firms_csv(firms_csv)))

        deduped = deduplicate_alerts(alerts)

        assert {a.confidence for a in deduped} == {90.0, 30.0}

    def test_distant_hotspots_kept(self, firms_csv):
        alerts = parse_firms_csv(firms_csv)

        assert len(deduplicate_alerts(alerts, distance_degrees=0.0001)) == 3

    def test_single_alert(self, firms_csv):
        alerts = parse_firms_csv(firms_csv)[:1]

        assert deduplicate_alerts(alerts) == alerts


class TestFiltersAndStats:
    """Tests for filters and summary statistics."""

    def test_filters(self, firms_csv):
        alerts = parse_firms_csv(firms_csv)

        assert len(filter_by_confidence(alerts, 60)) == 2
        assert len(filter_by_frp(alerts, 100)) == 1
        assert len(filter_by_department(alerts, "Beni")) == 1

    def test_group_by_department(self, firms_csv):
        grouped = group_by_department(parse_firms_csv(firms_csv))

        assert set(grouped) == {"Santa Cruz", "Beni"}
        assert len(grouped["Santa Cruz"]) == 2

    def test_stats(self, firms_csv):
        stats = get_alert_stats(parse_firms_csv(firms_csv))

        assert stats.total == 3
        assert stats.by_department == {"Santa Cruz": 2, "Beni": 1}
        assert stats.by_severity == {"LOW": 1, "MEDIUM": 1, "HIGH": 1}
        assert stats.avg_confidence == pytest.approx(60.0)
        assert stats.avg_frp == pytest.approx(55.2)

    def test_stats_empty(self):
        stats = get_alert_stats([])

        assert stats.total == 0
        assert stats.by_severity == {"LOW": 0, "MEDIUM": 0, "HIGH": 0}
