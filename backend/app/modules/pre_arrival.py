"""Pre-arrival intelligence: which vessels are genuinely inbound to a port.

Algorithm, per latest fix of each vessel:
  1. Drop vessels beyond the 200nm search radius.
  2. Drop vessels slower than 3kn (anchored/drifting traffic is counted by
     the congestion classifier instead).
  3. Compare reported heading with the bearing to the port. A vessel is
     inbound when the deviation is <= 45°; without a heading it is assumed
     inbound.
  4. ETA = distance / speed; drop if beyond the requested window.
  5. Confidence: <= 15° high, <= 30° medium, otherwise low; no heading means medium.
Results are sorted by ETA ascending.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings, settings as default_settings
from app.models.base import ConfidenceTierEnum
from app.modules.collaborators import (
    REASON_POSITIONS_UNAVAILABLE,
    PortDirectory,
    PortInfo,
    PortUnavailable,
    PositionFix,
    PositionStore,
    ensure_utc,
    latest_fix_per_vessel,
    resolve_port,
    utc_now,
)
from app.modules.snapshot_cache import SnapshotCache
from app.utils.geo import haversine_nm, initial_bearing_deg, heading_difference_deg

logger = logging.getLogger(__name__)

CACHE_KIND = "pre_arrival"


@dataclass(frozen=True)
class PreArrivalThresholds:
    recency_hours: float = 12.0
    default_window_hours: float = 48.0
    search_radius_nm: float = 200.0
    min_speed_kn: float = 3.0
    max_heading_diff_deg: float = 45.0
    high_confidence_max_diff_deg: float = 15.0
    medium_confidence_max_diff_deg: float = 30.0
    position_limit: int = 8000

    @classmethod
    def from_settings(cls, s: Settings) -> "PreArrivalThresholds":
        return cls(
            recency_hours=s.PRE_ARRIVAL_RECENCY_HOURS,
            default_window_hours=s.PRE_ARRIVAL_WINDOW_HOURS,
            search_radius_nm=s.PRE_ARRIVAL_SEARCH_RADIUS_NM,
            min_speed_kn=s.PRE_ARRIVAL_MIN_SPEED_KN,
            max_heading_diff_deg=s.INBOUND_MAX_HEADING_DIFF_DEG,
            high_confidence_max_diff_deg=s.CONFIDENCE_HIGH_MAX_DIFF_DEG,
            medium_confidence_max_diff_deg=s.CONFIDENCE_MEDIUM_MAX_DIFF_DEG,
            position_limit=s.PRE_ARRIVAL_POSITION_LIMIT,
        )


@dataclass(frozen=True)
class PreArrivalVessel:
    vessel_id: str
    vessel_name: str
    distance_nm: float
    speed_knots: float
    heading_deg: Optional[float]
    bearing_to_port_deg: float
    eta_hours: float
    eta_at: datetime
    confidence: ConfidenceTierEnum
    last_observed_at: datetime


@dataclass(frozen=True)
class PreArrivalReport:
    port: PortInfo
    window_hours: float
    vessels: list[PreArrivalVessel]
    generated_at: datetime

    @property
    def inbound_count(self) -> int:
        return len(self.vessels)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["generated_at"] = self.generated_at.isoformat()
        for v in data["vessels"]:
            v["confidence"] = v["confidence"].value
            v["eta_at"] = v["eta_at"].isoformat()
            v["last_observed_at"] = v["last_observed_at"].isoformat()
        return data


def estimate_eta_hours(distance_nm: float, speed_knots: float) -> float:
    return distance_nm / speed_knots


def is_inbound(
    heading_deg: Optional[float],
    bearing_to_port_deg: float,
    thresholds: PreArrivalThresholds = PreArrivalThresholds(),
) -> bool:
    if heading_deg is None:
        return True
    return heading_difference_deg(heading_deg, bearing_to_port_deg) <= thresholds.max_heading_diff_deg


def confidence_tier(
    heading_diff_deg: Optional[float],
    thresholds: PreArrivalThresholds = PreArrivalThresholds(),
) -> ConfidenceTierEnum:
    if heading_diff_deg is None:
        return ConfidenceTierEnum.MEDIUM
    if heading_diff_deg <= thresholds.high_confidence_max_diff_deg:
        return ConfidenceTierEnum.HIGH
    if heading_diff_deg <= thresholds.medium_confidence_max_diff_deg:
        return ConfidenceTierEnum.MEDIUM
    return ConfidenceTierEnum.LOW


def evaluate_fix(
    port: PortInfo,
    fix: PositionFix,
    window_hours: float,
    thresholds: PreArrivalThresholds = PreArrivalThresholds(),
    now: datetime | None = None,
) -> PreArrivalVessel | None:
    """PreArrivalVessel for *fix*, or None if the vessel is not inbound in time."""
    if port.coordinate is None:
        raise ValueError(f"Port {port.code} has no coordinates")
    dist = haversine_nm(fix.coordinate.lat, fix.coordinate.lon, port.coordinate.lat, port.coordinate.lon)
    if dist > thresholds.search_radius_nm:
        return None

    speed = fix.speed_or_zero
    if speed < thresholds.min_speed_kn:
        return None

    bearing = initial_bearing_deg(fix.coordinate.lat, fix.coordinate.lon, port.coordinate.lat, port.coordinate.lon)
    if not is_inbound(fix.heading_deg, bearing, thresholds):
        return None

    eta_hours = estimate_eta_hours(dist, speed)
    if eta_hours > window_hours:
        return None

    diff = heading_difference_deg(fix.heading_deg, bearing) if fix.heading_deg is not None else None
    now = now or utc_now()
    return PreArrivalVessel(
        vessel_id=fix.vessel_id,
        vessel_name=fix.vessel_name,
        distance_nm=dist,
        speed_knots=speed,
        heading_deg=fix.heading_deg,
        bearing_to_port_deg=bearing,
        eta_hours=eta_hours,
        eta_at=now + timedelta(hours=eta_hours),
        confidence=confidence_tier(diff, thresholds),
        last_observed_at=ensure_utc(fix.observed_at),
    )


def predict_pre_arrivals(
    port: PortInfo,
    fixes: Iterable[PositionFix],
    window_hours: float | None = None,
    thresholds: PreArrivalThresholds = PreArrivalThresholds(),
    now: datetime | None = None,
) -> PreArrivalReport:
    """Inbound vessels for *port* sorted by ETA. No side effects."""
    now = now or utc_now()
    window = thresholds.default_window_hours if window_hours is None else window_hours
    vessels = []
    for fix in latest_fix_per_vessel(fixes):
        candidate = evaluate_fix(port, fix, window, thresholds, now=now)
        if candidate is not None:
            vessels.append(candidate)
    vessels.sort(key=lambda v: v.eta_hours)
    return PreArrivalReport(port=port, window_hours=window, vessels=vessels, generated_at=now)


class PreArrivalService:
    def __init__(
        self,
        positions: PositionStore,
        ports: PortDirectory,
        cache: SnapshotCache | None = None,
        thresholds: PreArrivalThresholds | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.positions = positions
        self.ports = ports
        self.cache = cache
        self.thresholds = thresholds or PreArrivalThresholds.from_settings(default_settings)
        self.clock = clock

    def get_report(self, port_code: str, window_hours: float | None = None) -> PreArrivalReport | PortUnavailable:
        port = resolve_port(self.ports, port_code)
        if isinstance(port, PortUnavailable):
            logger.info("Pre-arrival unavailable for %s: %s", port.port_code, port.reason)
            return port

        window = self.thresholds.default_window_hours if window_hours is None else window_hours
        if window <= 0:
            raise ValueError(f"window_hours must be positive, got {window}")
        cache_kind = f"{CACHE_KIND}:{window:g}"
        if self.cache is not None:
            cached = self.cache.get(cache_kind, port.code)
            if cached is not None:
                return cached

        now = self.clock()
        since = now - timedelta(hours=self.thresholds.recency_hours)
        try:
            fixes = self.positions.get_recent_positions(since, limit=self.thresholds.position_limit)
        except SQLAlchemyError as exc:
            logger.error("Position fetch failed for %s: %s", port.code, exc)
            return PortUnavailable(port.code, REASON_POSITIONS_UNAVAILABLE)

        fixes = [f for f in fixes if ensure_utc(f.observed_at) >= since]
        report = predict_pre_arrivals(port, fixes, window, self.thresholds, now=now)
        if self.cache is not None:
            self.cache.set(cache_kind, port.code, report)
        logger.debug("Pre-arrival %s: %d inbound within %gh", port.code, report.inbound_count, window)
        return report
