"""ETA-ordered arrival schedule for a port.

Joins the pre-arrival forecast with the current congestion picture and each
vessel's document readiness.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from app.modules.collaborators import DocumentSignalProvider, DocumentSignals, PortUnavailable
from app.modules.congestion_engine import CongestionService, CongestionSnapshot
from app.modules.pre_arrival import PreArrivalReport, PreArrivalService, PreArrivalVessel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledArrival:
    vessel: PreArrivalVessel
    documents: Optional[DocumentSignals]
    congestion_level: Optional[str]
    estimated_wait_hours: Optional[float]


@dataclass(frozen=True)
class ArrivalSchedule:
    report: PreArrivalReport
    congestion: Optional[CongestionSnapshot]
    arrivals: list[ScheduledArrival]


def build_arrival_schedule(
    congestion: CongestionService,
    pre_arrival: PreArrivalService,
    documents: DocumentSignalProvider,
    port_code: str,
    window_hours: float = 72.0,
) -> ArrivalSchedule | PortUnavailable:
    report = pre_arrival.get_report(port_code, window_hours)
    if isinstance(report, PortUnavailable):
        return report

    snapshot = congestion.get_snapshot(port_code)
    current = snapshot if isinstance(snapshot, CongestionSnapshot) else None

    arrivals = []
    for vessel in report.vessels:
        try:
            signals = documents.get_signals(vessel.vessel_id, report.port.code)
        except Exception as exc:
            logger.warning("Document signals unavailable for %s: %s", vessel.vessel_id, exc)
            signals = None
        arrivals.append(ScheduledArrival(
            vessel=vessel,
            documents=signals,
            congestion_level=current.level.value if current else None,
            estimated_wait_hours=current.estimated_wait_hours if current else None,
        ))
    return ArrivalSchedule(report=report, congestion=current, arrivals=arrivals)
