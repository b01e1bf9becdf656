"""Port congestion classification.

Classifies vessels near a port as anchorage / approach / transit and derives
a congestion score, level, estimated wait and detention-cost exposure.

Zones (first match wins, boundaries inclusive):
  anchorage: within 8nm AND (SOG <= 2kn OR nav status at anchor/moored/aground)
  approach:  within 20nm AND SOG <= 5kn
  transit:   anything else within the 25nm scan radius

Score:  15 per anchorage vessel + 5 per approach vessel (transit adds nothing)
Level:  low 0-9 | moderate 10-24 | high 25-49 | critical 50+

build_congestion_snapshot() is pure. CongestionService adds the position
fetch, caching and the high/critical side effects (durable log + hook).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings, settings as default_settings
from app.models.base import CongestionLevelEnum, ZoneEnum
from app.modules.collaborators import (
    STOPPED_NAV_STATUSES,
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
from app.utils.geo import haversine_nm

logger = logging.getLogger(__name__)

CACHE_KIND = "congestion"
ALERTING_LEVELS = frozenset({CongestionLevelEnum.HIGH, CongestionLevelEnum.CRITICAL})


@dataclass(frozen=True)
class CongestionThresholds:
    window_hours: float = 6.0
    scan_radius_nm: float = 25.0
    anchorage_radius_nm: float = 8.0
    anchorage_max_speed_kn: float = 2.0
    approach_radius_nm: float = 20.0
    approach_max_speed_kn: float = 5.0
    anchorage_weight: int = 15
    approach_weight: int = 5
    moderate_score: int = 10
    high_score: int = 25
    critical_score: int = 50
    wait_hours_per_anchored: float = 6.0
    wait_hours_per_approaching: float = 2.0
    detention_cost_per_hour: float = 500.0
    vessel_list_limit: int = 25
    position_limit: int = 5000

    @classmethod
    def from_settings(cls, s: Settings) -> "CongestionThresholds":
        return cls(
            window_hours=s.CONGESTION_WINDOW_HOURS,
            scan_radius_nm=s.CONGESTION_SCAN_RADIUS_NM,
            anchorage_radius_nm=s.ANCHORAGE_RADIUS_NM,
            anchorage_max_speed_kn=s.ANCHORAGE_MAX_SPEED_KN,
            approach_radius_nm=s.APPROACH_RADIUS_NM,
            approach_max_speed_kn=s.APPROACH_MAX_SPEED_KN,
            anchorage_weight=s.ANCHORAGE_SCORE_WEIGHT,
            approach_weight=s.APPROACH_SCORE_WEIGHT,
            moderate_score=s.LEVEL_MODERATE_SCORE,
            high_score=s.LEVEL_HIGH_SCORE,
            critical_score=s.LEVEL_CRITICAL_SCORE,
            wait_hours_per_anchored=s.WAIT_HOURS_PER_ANCHORED,
            wait_hours_per_approaching=s.WAIT_HOURS_PER_APPROACHING,
            detention_cost_per_hour=s.DETENTION_COST_PER_HOUR,
            vessel_list_limit=s.CONGESTION_VESSEL_LIST_LIMIT,
            position_limit=s.CONGESTION_POSITION_LIMIT,
        )


@dataclass(frozen=True)
class VesselSighting:
    vessel_id: str
    vessel_name: str
    distance_nm: float
    speed_knots: float
    heading_deg: Optional[float]
    nav_status: Optional[int]
    zone: ZoneEnum


@dataclass(frozen=True)
class ZoneCounts:
    anchorage: int = 0
    approach: int = 0
    transit: int = 0

    @property
    def waiting(self) -> int:
        return self.anchorage + self.approach


@dataclass(frozen=True)
class CongestionSnapshot:
    port: PortInfo
    counts: ZoneCounts
    score: int
    level: CongestionLevelEnum
    estimated_wait_hours: float
    detention_cost_estimate: float
    vessels: list[VesselSighting]
    data_window_hours: float
    computed_at: datetime

    def to_dict(self) -> dict:
        data = asdict(self)
        data["level"] = self.level.value
        data["computed_at"] = self.computed_at.isoformat()
        for v in data["vessels"]:
            v["zone"] = v["zone"].value
        return data


def classify_zone(
    distance_nm: float,
    speed_knots: float,
    nav_status: Optional[int],
    thresholds: CongestionThresholds = CongestionThresholds(),
) -> ZoneEnum | None:
    """Zone for a vessel at *distance_nm* from the port, or None beyond the scan radius."""
    if distance_nm > thresholds.scan_radius_nm:
        return None
    stopped = nav_status is not None and nav_status in STOPPED_NAV_STATUSES
    if distance_nm <= thresholds.anchorage_radius_nm and (
        speed_knots <= thresholds.anchorage_max_speed_kn or stopped
    ):
        return ZoneEnum.ANCHORAGE
    if distance_nm <= thresholds.approach_radius_nm and speed_knots <= thresholds.approach_max_speed_kn:
        return ZoneEnum.APPROACH
    return ZoneEnum.TRANSIT


def congestion_score(counts: ZoneCounts, thresholds: CongestionThresholds = CongestionThresholds()) -> int:
    return counts.anchorage * thresholds.anchorage_weight + counts.approach * thresholds.approach_weight


def score_to_level(score: int, thresholds: CongestionThresholds = CongestionThresholds()) -> CongestionLevelEnum:
    if score >= thresholds.critical_score:
        return CongestionLevelEnum.CRITICAL
    if score >= thresholds.high_score:
        return CongestionLevelEnum.HIGH
    if score >= thresholds.moderate_score:
        return CongestionLevelEnum.MODERATE
    return CongestionLevelEnum.LOW


def estimate_wait_hours(counts: ZoneCounts, thresholds: CongestionThresholds = CongestionThresholds()) -> float:
    # Rough dwell model: 6h per vessel at anchor, 2h per vessel approaching
    return (
        counts.anchorage * thresholds.wait_hours_per_anchored
        + counts.approach * thresholds.wait_hours_per_approaching
    )


def build_congestion_snapshot(
    port: PortInfo,
    fixes: Iterable[PositionFix],
    thresholds: CongestionThresholds = CongestionThresholds(),
    now: datetime | None = None,
) -> CongestionSnapshot:
    """Classify *fixes* around *port* into a snapshot. No side effects.

    *fixes* may contain several reports per vessel; only the latest is used.
    """
    if port.coordinate is None:
        raise ValueError(f"Port {port.code} has no coordinates")
    now = now or utc_now()

    anchorage = approach = transit = 0
    sightings: list[VesselSighting] = []

    for fix in latest_fix_per_vessel(fixes):
        dist = haversine_nm(
            port.coordinate.lat, port.coordinate.lon,
            fix.coordinate.lat, fix.coordinate.lon,
        )
        speed = fix.speed_or_zero
        zone = classify_zone(dist, speed, fix.nav_status, thresholds)
        if zone is None:
            continue
        if zone is ZoneEnum.ANCHORAGE:
            anchorage += 1
        elif zone is ZoneEnum.APPROACH:
            approach += 1
        else:
            transit += 1
        sightings.append(VesselSighting(
            vessel_id=fix.vessel_id,
            vessel_name=fix.vessel_name,
            distance_nm=dist,
            speed_knots=speed,
            heading_deg=fix.heading_deg,
            nav_status=fix.nav_status,
            zone=zone,
        ))

    sightings.sort(key=lambda s: s.distance_nm)

    counts = ZoneCounts(anchorage=anchorage, approach=approach, transit=transit)
    score = congestion_score(counts, thresholds)
    wait_hours = estimate_wait_hours(counts, thresholds)

    return CongestionSnapshot(
        port=port,
        counts=counts,
        score=score,
        level=score_to_level(score, thresholds),
        estimated_wait_hours=wait_hours,
        detention_cost_estimate=round(wait_hours * thresholds.detention_cost_per_hour, 2),
        vessels=sightings[:thresholds.vessel_list_limit],
        data_window_hours=thresholds.window_hours,
        computed_at=now,
    )


def format_congestion_summary(snapshot: CongestionSnapshot) -> str:
    """Multi-line human summary used for congestion notifications."""
    return "\n".join([
        "*Port Congestion Alert*",
        f"Port: *{snapshot.port.name}* ({snapshot.port.code})",
        f"Level: *{snapshot.level.value.upper()}* - Score {snapshot.score}",
        f"Vessels at anchor: {snapshot.counts.anchorage} | Approaching: {snapshot.counts.approach}",
        f"Est. wait: {snapshot.estimated_wait_hours:g}h | Detention exposure: "
        f"${snapshot.detention_cost_estimate:,.0f}",
    ])


class CongestionAlertLog:
    """Durable JSON-lines record of high/critical congestion computations."""

    def __init__(self, path: str | Path | None) -> None:
        self._path = Path(path) if path else None

    def append(self, snapshot: CongestionSnapshot) -> bool:
        if self._path is None:
            return False
        entry = {
            "ts": snapshot.computed_at.isoformat(),
            "port": snapshot.port.code,
            "level": snapshot.level.value,
            "score": snapshot.score,
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as exc:
            logger.warning("Could not append congestion alert log %s: %s", self._path, exc)
            return False
        return True


class CongestionService:
    """Read-through congestion snapshots with high-congestion side effects."""

    def __init__(
        self,
        positions: PositionStore,
        ports: PortDirectory,
        cache: SnapshotCache | None = None,
        thresholds: CongestionThresholds | None = None,
        alert_log: CongestionAlertLog | None = None,
        on_high_congestion: Callable[[CongestionSnapshot], None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.positions = positions
        self.ports = ports
        self.cache = cache
        self.thresholds = thresholds or CongestionThresholds.from_settings(default_settings)
        self.alert_log = alert_log
        self.on_high_congestion = on_high_congestion
        self.clock = clock

    def get_snapshot(self, port_code: str) -> CongestionSnapshot | PortUnavailable:
        port = resolve_port(self.ports, port_code)
        if isinstance(port, PortUnavailable):
            logger.info("Congestion unavailable for %s: %s", port.port_code, port.reason)
            return port

        if self.cache is not None:
            cached = self.cache.get(CACHE_KIND, port.code)
            if cached is not None:
                return cached

        now = self.clock()
        since = now - timedelta(hours=self.thresholds.window_hours)
        try:
            fixes = self.positions.get_recent_positions(since, limit=self.thresholds.position_limit)
        except SQLAlchemyError as exc:
            logger.error("Position fetch failed for %s: %s", port.code, exc)
            return PortUnavailable(port.code, REASON_POSITIONS_UNAVAILABLE)

        fixes = [f for f in fixes if ensure_utc(f.observed_at) >= since]
        snapshot = build_congestion_snapshot(port, fixes, self.thresholds, now=now)

        if self.cache is not None:
            self.cache.set(CACHE_KIND, port.code, snapshot)

        if snapshot.level in ALERTING_LEVELS:
            self._record_high_congestion(snapshot)
        return snapshot

    def _record_high_congestion(self, snapshot: CongestionSnapshot) -> None:
        logger.warning(
            "Congestion %s at %s: score=%d anchorage=%d approach=%d wait=%.0fh",
            snapshot.level.value, snapshot.port.code, snapshot.score,
            snapshot.counts.anchorage, snapshot.counts.approach, snapshot.estimated_wait_hours,
        )
        if self.alert_log is not None:
            self.alert_log.append(snapshot)
        if self.on_high_congestion is not None:
            self.on_high_congestion(snapshot)

    def all_ports_congestion(self) -> list[CongestionSnapshot]:
        """Snapshots for every port with coordinates, highest score first."""
        results: list[CongestionSnapshot] = []
        for port in self.ports.list_ports():
            if port.coordinate is None:
                continue
            snapshot = self.get_snapshot(port.code)
            if isinstance(snapshot, CongestionSnapshot):
                results.append(snapshot)
        results.sort(key=lambda s: s.score, reverse=True)
        return results

    def top_congested_ports(self, limit: int = 10) -> list[CongestionSnapshot]:
        """The *limit* most congested ports, excluding those scoring 0."""
        return [s for s in self.all_ports_congestion() if s.score > 0][:limit]
