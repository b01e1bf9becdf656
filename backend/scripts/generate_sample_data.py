"""Generate synthetic AIS traffic around a port for an end-to-end demo.

Vessels and scenarios (relative to the chosen port, default SGSIN):
  A, B (anchored)       : inside the anchorage ring, SOG < 1kn, nav_status=1
  C, D, E (approaching) : inside the approach ring, SOG 3-4kn
      -> 2 * 15 + 3 * 5 = 45 points, congestion level HIGH
  F (inbound, 60nm)     : heading straight for the port at 12kn -> ETA 5h, DG manifest submitted
  G (inbound, 150nm)    : 10 deg off the bearing at 14kn -> ETA ~10.7h, overdue mandatory document
  H (outbound, 90nm)    : heading away from the port -> never forecast

Usage:
    from app.database import SessionLocal
    from scripts.generate_sample_data import generate_sample_traffic
    db = SessionLocal()
    generate_sample_traffic(db, "SGSIN")
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.utils.geo import offset_position

logger = logging.getLogger(__name__)

# (imo, mmsi, name, bearing_from_port, distance_nm, sog, heading, nav_status)
SAMPLE_VESSELS: list[tuple[str, str, str, float, float, float, Optional[float], Optional[int]]] = [
    ("9811000", "477123400", "EVER GIVEN", 200.0, 3.5, 0.4, 15.0, 1),
    ("9792819", "563000000", "MSC GULSUN", 160.0, 5.0, 0.8, 340.0, 1),
    ("9321483", "477456200", "MAERSK EMDEN", 120.0, 12.0, 3.5, 300.0, 0),
    ("9632179", "636018825", "PIONEER", 60.0, 15.0, 4.0, 240.0, 0),
    ("9468631", "241533000", "MINERVA GEORGIA", 300.0, 18.0, 3.0, None, 0),
    ("9775891", "538005881", "ORE BRASIL", 270.0, 60.0, 12.0, 90.0, 0),
    ("9839187", "636092237", "BIG ORANGE XVIII", 250.0, 150.0, 14.0, 80.0, 0),
    ("9700637", "371259000", "CARNIVAL VISTA", 90.0, 90.0, 16.0, 90.0, 0),
]

DG_MANIFEST_IMO = "9775891"
OVERDUE_DOC_IMO = "9839187"

# Hourly history, newest fix ten minutes before "now"
_HISTORY_HOURS = 3


def generate_sample_traffic(db: Session, port_code: str = "SGSIN", now: datetime | None = None) -> dict:
    """Insert sample vessels, recent position history and voyage documents.

    Idempotent per vessel (keyed by IMO); positions are always appended.
    """
    from app.models.base import DocumentStatusEnum
    from app.models.port import Port
    from app.models.vessel import Vessel
    from app.models.vessel_position import VesselPosition
    from app.models.voyage_document import VoyageDocument

    port = db.query(Port).filter(Port.unlocode == port_code.upper()).first()
    if port is None or port.lat is None or port.lon is None:
        raise ValueError(f"Port {port_code} not seeded or has no coordinates")

    now = now or datetime.now(timezone.utc)
    latest_ts = now - timedelta(minutes=10)
    vessels_created = 0
    positions_created = 0

    for imo, mmsi, name, bearing, distance, sog, heading, nav_status in SAMPLE_VESSELS:
        vessel = db.query(Vessel).filter(Vessel.imo == imo).first()
        if vessel is None:
            vessel = Vessel(imo=imo, mmsi=mmsi, name=name)
            db.add(vessel)
            db.flush()
            vessels_created += 1

        lat, lon = offset_position(port.lat, port.lon, bearing, distance)
        track = heading if heading is not None else (bearing + 180.0) % 360.0
        for h in range(_HISTORY_HOURS, -1, -1):
            # Walk back along the track for moving vessels
            back_nm = sog * h if sog >= 1.0 else 0.0
            p_lat, p_lon = offset_position(lat, lon, (track + 180.0) % 360.0, back_nm)
            db.add(VesselPosition(
                vessel_id=vessel.vessel_id,
                timestamp_utc=latest_ts - timedelta(hours=h),
                lat=round(p_lat, 5),
                lon=round(p_lon, 5),
                sog=sog,
                heading=heading,
                nav_status=nav_status,
                source="sample",
            ))
            positions_created += 1

    documents = [
        (DG_MANIFEST_IMO, "dangerous-goods", DocumentStatusEnum.SUBMITTED, 24.0, now + timedelta(hours=5)),
        (DG_MANIFEST_IMO, "crew-list", DocumentStatusEnum.VERIFIED, 24.0, now + timedelta(hours=5)),
        (DG_MANIFEST_IMO, "health-declaration", DocumentStatusEnum.PENDING, 2.0, now + timedelta(hours=5)),
        (OVERDUE_DOC_IMO, "health-declaration", DocumentStatusEnum.PENDING, 24.0, now + timedelta(hours=11)),
    ]
    documents_created = 0
    for imo, doc_code, status, due_hours, eta in documents:
        voyage_id = f"{imo}-{port.unlocode}"
        exists = db.query(VoyageDocument).filter(
            VoyageDocument.voyage_id == voyage_id, VoyageDocument.doc_code == doc_code,
        ).first()
        if exists:
            continue
        db.add(VoyageDocument(
            voyage_id=voyage_id,
            imo=imo,
            port_code=port.unlocode,
            doc_code=doc_code,
            mandatory=True,
            status=status.value,
            due_hours_before_eta=due_hours,
            eta_utc=eta,
        ))
        documents_created += 1

    db.commit()
    logger.info(
        "generate_sample_traffic %s: vessels=%d positions=%d documents=%d",
        port.unlocode, vessels_created, positions_created, documents_created,
    )
    return {"vessels": vessels_created, "positions": positions_created, "documents": documents_created}
