"""Data contracts for the collaborators the port intelligence core depends on.

The congestion classifier, pre-arrival predictor and alert engine only talk
to these interfaces:
  - PositionStore: recent AIS fixes, most recent first
  - PortDirectory: port identity and coordinates
  - DocumentSignalProvider: document readiness per vessel + port

Reference SQLAlchemy implementations live in app.modules.sql_sources.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

# AIS navigation status codes for stopped vessels
NAV_STATUS_AT_ANCHOR = 1
NAV_STATUS_MOORED = 5
NAV_STATUS_AGROUND = 6
STOPPED_NAV_STATUSES: frozenset[int] = frozenset(
    {NAV_STATUS_AT_ANCHOR, NAV_STATUS_MOORED, NAV_STATUS_AGROUND}
)

REASON_NOT_FOUND = "not_found"
REASON_NO_COORDINATES = "no_coordinates"
REASON_POSITIONS_UNAVAILABLE = "positions_unavailable"


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float


@dataclass(frozen=True)
class PositionFix:
    """Most recent known location of one vessel."""
    vessel_id: str
    vessel_name: str
    coordinate: Coordinate
    speed_knots: Optional[float]
    observed_at: datetime
    heading_deg: Optional[float] = None
    nav_status: Optional[int] = None

    @property
    def speed_or_zero(self) -> float:
        return self.speed_knots if self.speed_knots is not None else 0.0


@dataclass(frozen=True)
class PortInfo:
    code: str
    name: str
    country: str
    coordinate: Optional[Coordinate] = None


@dataclass(frozen=True)
class DocumentSignals:
    any_overdue: bool = False
    dangerous_goods_submitted: bool = False
    overdue_count: int = 0
    voyage_id: Optional[str] = None


@dataclass(frozen=True)
class PortUnavailable:
    """Explicit "not available" result for a port that cannot be evaluated."""
    port_code: str
    reason: str

    @property
    def message(self) -> str:
        if self.reason == REASON_NOT_FOUND:
            return f"Port {self.port_code} not found"
        if self.reason == REASON_NO_COORDINATES:
            return f"Port {self.port_code} has no coordinates"
        return f"Position data unavailable for port {self.port_code}"


class PositionStore(ABC):
    @abstractmethod
    def get_recent_positions(self, since: datetime, limit: int | None = None) -> list[PositionFix]:
        """Fixes observed at or after *since*, most recent first."""
        ...


class PortDirectory(ABC):
    @abstractmethod
    def get_port(self, code: str) -> PortInfo | None:
        ...

    @abstractmethod
    def list_ports(self) -> list[PortInfo]:
        ...


class DocumentSignalProvider(ABC):
    @abstractmethod
    def get_signals(self, vessel_id: str, port_code: str) -> DocumentSignals:
        ...


def normalize_port_code(code: str) -> str:
    return code.strip().upper()


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def latest_fix_per_vessel(fixes: Iterable[PositionFix]) -> list[PositionFix]:
    """Keep only the most recent fix per vessel.

    Input order does not matter; ties keep the first fix seen.
    """
    latest: dict[str, PositionFix] = {}
    for fix in fixes:
        current = latest.get(fix.vessel_id)
        if current is None or ensure_utc(fix.observed_at) > ensure_utc(current.observed_at):
            latest[fix.vessel_id] = fix
    return list(latest.values())


def resolve_port(directory: PortDirectory, code: str) -> PortInfo | PortUnavailable:
    """Look up a port and reject it unless it carries a coordinate."""
    upper = normalize_port_code(code)
    port = directory.get_port(upper)
    if port is None:
        return PortUnavailable(upper, REASON_NOT_FOUND)
    if port.coordinate is None:
        return PortUnavailable(upper, REASON_NO_COORDINATES)
    return port
