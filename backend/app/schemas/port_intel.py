"""Pydantic schemas for congestion, pre-arrival and arrival schedule responses."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class CoordinateRead(BaseModel):
    lat: float
    lon: float


class PortRead(BaseModel):
    code: str
    name: str
    country: str
    coordinate: Optional[CoordinateRead] = None


class ZoneCountsRead(BaseModel):
    anchorage: int
    approach: int
    transit: int


class VesselSightingRead(BaseModel):
    vessel_id: str
    vessel_name: str
    distance_nm: float
    speed_knots: float
    heading_deg: Optional[float] = None
    nav_status: Optional[int] = None
    zone: str


class CongestionSnapshotRead(BaseModel):
    port: PortRead
    counts: ZoneCountsRead
    score: int
    level: str
    estimated_wait_hours: float
    detention_cost_estimate: float
    vessels: list[VesselSightingRead]
    data_window_hours: float
    computed_at: datetime


class PreArrivalVesselRead(BaseModel):
    vessel_id: str
    vessel_name: str
    distance_nm: float
    speed_knots: float
    heading_deg: Optional[float] = None
    bearing_to_port_deg: float
    eta_hours: float
    eta_at: datetime
    confidence: str
    last_observed_at: datetime


class PreArrivalReportRead(BaseModel):
    port: PortRead
    window_hours: float
    inbound_vessels: int
    vessels: list[PreArrivalVesselRead]
    generated_at: datetime


class DocumentSignalsRead(BaseModel):
    any_overdue: bool
    dangerous_goods_submitted: bool
    overdue_count: int
    voyage_id: Optional[str] = None


class ScheduledArrivalRead(PreArrivalVesselRead):
    documents: Optional[DocumentSignalsRead] = None
    congestion_level: Optional[str] = None
    estimated_wait_hours: Optional[float] = None


class ArrivalScheduleRead(BaseModel):
    port: PortRead
    window_hours: float
    current_congestion_level: Optional[str] = None
    current_congestion_score: Optional[int] = None
    arrival_count: int
    arrivals: list[ScheduledArrivalRead]
    generated_at: datetime
