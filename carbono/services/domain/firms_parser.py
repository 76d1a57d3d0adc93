"""
Domain service: NASA FIRMS hotspot parsing and classification.

CSV columns (VIIRS / MODIS area API):
latitude,longitude,brightness|bright_ti4,scan,track,acq_date,acq_time,
satellite,instrument,confidence,version,bright_t31|bright_ti5,frp,daynight
"""
import csv
import io
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

import numpy as np
from scipy.spatial import KDTree

from carbono.domain.bolivia import get_department_from_coordinates
from carbono.domain.models import AlertStats, HotspotAlert, Severity

logger = logging.getLogger(__name__)

# Roughly 500 m at Bolivian latitudes
DEDUP_DISTANCE_DEGREES = 0.005

# MODIS reports low/nominal/high, VIIRS l/n/h
TEXT_CONFIDENCE = {
    "low": 30.0,
    "l": 30.0,
    "nominal": 60.0,
    "n": 60.0,
    "high": 90.0,
    "h": 90.0,
}

UNKNOWN_DEPARTMENT = "Unknown"


def normalize_confidence(confidence: Optional[str]) -> float:
    """Map a FIRMS confidence value to the 0-100 scale."""
    if confidence is None:
        return 0.0
    value = confidence.strip().lower()
    if value in TEXT_CONFIDENCE:
        return TEXT_CONFIDENCE[value]
    try:
        return float(value)
    except ValueError:
        return 0.0


def parse_acquisition_datetime(acq_date: str, acq_time: str) -> datetime:
    """
    Combine FIRMS date (YYYY-MM-DD) and time (HHMM) into a UTC datetime.

    Raises:
        ValueError: If either part is malformed
    """
    hhmm = int(acq_time)
    day = datetime.strptime(acq_date.strip(), "%Y-%m-%d")
    return day.replace(hour=hhmm // 100, minute=hhmm % 100, tzinfo=timezone.utc)


def calculate_severity(confidence: float, frp: float) -> Severity:
    """
    Classify a hotspot.

    HIGH: high confidence AND high fire radiative power.
    MEDIUM: moderate confidence OR moderate FRP.
    """
    if confidence >= 80 and frp >= 100:
        return Severity.HIGH
    if confidence >= 50 or frp >= 50:
        return Severity.MEDIUM
    return Severity.LOW


def _float(row: Dict[str, str], *keys: str, default: float = 0.0) -> float:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return float(value)
    return default


def _row_to_alert(row: Dict[str, str]) -> Optional[HotspotAlert]:
    if not row.get("latitude") or not row.get("longitude"):
        return None
    if not row.get("acq_date") or not row.get("acq_time"):
        return None

    latitude = float(row["latitude"])
    longitude = float(row["longitude"])
    confidence = normalize_confidence(row.get("confidence"))
    frp = _float(row, "frp")

    return HotspotAlert(
        latitude=latitude,
        longitude=longitude,
        brightness=_float(row, "brightness", "bright_ti4"),
        confidence=confidence,
        acquisition_date=parse_acquisition_datetime(row["acq_date"], row["acq_time"]),
        satellite=row.get("satellite") or "",
        instrument=row.get("instrument") or "",
        frp=frp,
        day_night="DAY" if (row.get("daynight") or "").upper() == "D" else "NIGHT",
        department=get_department_from_coordinates(latitude, longitude),
        severity=calculate_severity(confidence, frp),
    )


def parse_firms_csv(csv_text: str) -> List[HotspotAlert]:
    """
    Parse FIRMS CSV into hotspot alerts.

    Rows missing coordinates or acquisition date/time, or with unparsable
    numbers, are skipped with a warning.

    Args:
        csv_text: Raw CSV body returned by the FIRMS area API

    Returns:
        Parsed alerts in file order
    """
    if not csv_text or not csv_text.strip():
        return []

    reader = csv.DictReader(io.StringIO(csv_text.strip()))
    alerts = []
    for line_number, row in enumerate(reader, start=2):
        try:
            alert = _row_to_alert(row)
        except ValueError as e:
            logger.warning(f"Skipping malformed FIRMS row {line_number}: {e}")
            continue
        if alert is None:
            logger.warning(f"Skipping FIRMS row {line_number}: missing coordinates or time")
            continue
        alerts.append(alert)

    logger.debug(f"Parsed {len(alerts)} FIRMS hotspots")
    return alerts


# ============================================================
# Filters and aggregation
# ============================================================

def filter_by_confidence(alerts: Iterable[HotspotAlert], min_confidence: float) -> List[HotspotAlert]:
    return [a for a in alerts if a.confidence >= min_confidence]


def filter_by_frp(alerts: Iterable[HotspotAlert], min_frp: float) -> List[HotspotAlert]:
    return [a for a in alerts if a.frp >= min_frp]


def filter_by_department(alerts: Iterable[HotspotAlert], department: str) -> List[HotspotAlert]:
    return [a for a in alerts if a.department == department]


def group_by_department(alerts: Iterable[HotspotAlert]) -> Dict[str, List[HotspotAlert]]:
    grouped: Dict[str, List[HotspotAlert]] = defaultdict(list)
    for alert in alerts:
        grouped[alert.department or UNKNOWN_DEPARTMENT].append(alert)
    return dict(grouped)


def deduplicate_alerts(
    alerts: List[HotspotAlert],
    distance_degrees: float = DEDUP_DISTANCE_DEGREES,
) -> List[HotspotAlert]:
    """
    Collapse hotspots closer than distance_degrees on both axes.

    Alerts are visited from highest to lowest confidence; an alert is kept
    unless a kept alert lies within the window. Output keeps input order.

    Args:
        alerts: Parsed alerts
        distance_degrees: Half-width of the square neighbourhood

    Returns:
        Deduplicated alerts
    """
    if len(alerts) < 2:
        return list(alerts)

    points = np.array([[a.longitude, a.latitude] for a in alerts])
    tree = KDTree(points)
    # Chebyshev metric gives the square window on both axes
    neighbours = tree.query_ball_point(points, r=distance_degrees, p=np.inf)

    order = sorted(range(len(alerts)), key=lambda i: -alerts[i].confidence)
    kept = np.zeros(len(alerts), dtype=bool)
    for index in order:
        if not any(kept[j] for j in neighbours[index] if j != index):
            kept[index] = True

    return [alert for alert, keep in zip(alerts, kept) if keep]


def get_alert_stats(alerts: List[HotspotAlert]) -> AlertStats:
    """Summary counts and averages for a set of alerts."""
    by_severity = {severity.value: 0 for severity in Severity}
    if not alerts:
        return AlertStats(
            total=0,
            by_department={},
            by_severity=by_severity,
            avg_confidence=0,
            avg_frp=0,
        )

    for alert in alerts:
        by_severity[alert.severity.value] += 1

    return AlertStats(
        total=len(alerts),
        by_department={
            department: len(items)
            for department, items in group_by_department(alerts).items()
        },
        by_severity=by_severity,
        avg_confidence=round(sum(a.confidence for a in alerts) / len(alerts), 1),
        avg_frp=round(sum(a.frp for a in alerts) / len(alerts), 1),
    )
