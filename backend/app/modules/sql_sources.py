"""SQLAlchemy-backed collaborators: positions, ports and document signals."""
from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.orm import Session, joinedload

from app.models.base import DocumentStatusEnum
from app.models.port import Port
from app.models.vessel_position import VesselPosition
from app.models.voyage_document import VoyageDocument
from app.modules.collaborators import (
    Coordinate,
    DocumentSignalProvider,
    DocumentSignals,
    PortDirectory,
    PortInfo,
    PositionFix,
    PositionStore,
    ensure_utc,
    normalize_port_code,
    utc_now,
)

logger = logging.getLogger(__name__)

DANGEROUS_GOODS_DOC_CODE = "dangerous-goods"
_NO_ETA = datetime.min.replace(tzinfo=timezone.utc)


def _port_info(port: Port) -> PortInfo:
    coordinate = None
    if port.lat is not None and port.lon is not None:
        coordinate = Coordinate(port.lat, port.lon)
    return PortInfo(code=port.unlocode, name=port.name, country=port.country, coordinate=coordinate)


class SqlPositionStore(PositionStore):
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_recent_positions(self, since: datetime, limit: int | None = None) -> list[PositionFix]:
        query = (
            self.db.query(VesselPosition)
            .options(joinedload(VesselPosition.vessel))
            .filter(VesselPosition.timestamp_utc >= since)
            .order_by(VesselPosition.timestamp_utc.desc())
        )
        if limit:
            query = query.limit(limit)

        fixes = []
        for row in query.all():
            vessel = row.vessel
            fixes.append(PositionFix(
                vessel_id=vessel.imo,
                vessel_name=vessel.name or vessel.imo,
                coordinate=Coordinate(row.lat, row.lon),
                speed_knots=row.sog,
                heading_deg=row.heading,
                nav_status=row.nav_status,
                observed_at=ensure_utc(row.timestamp_utc),
            ))
        return fixes


class SqlPortDirectory(PortDirectory):
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_port(self, code: str) -> PortInfo | None:
        port = self.db.query(Port).filter(Port.unlocode == normalize_port_code(code)).first()
        return _port_info(port) if port else None

    def list_ports(self) -> list[PortInfo]:
        return [_port_info(p) for p in self.db.query(Port).order_by(Port.unlocode).all()]


class SqlDocumentSignalProvider(DocumentSignalProvider):
    """Document readiness from the voyage_documents checklist table.

    Only open voyages count: a voyage is open while any of its documents is
    pending or rejected. When several voyages are open the one with the
    latest ETA is used. A mandatory document is overdue when it is still
    pending and the current time is past ``eta_utc - due_hours_before_eta``.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now) -> None:
        self.db = db
        self.clock = clock

    def get_signals(self, vessel_id: str, port_code: str) -> DocumentSignals:
        docs = (
            self.db.query(VoyageDocument)
            .filter(
                VoyageDocument.imo == vessel_id,
                VoyageDocument.port_code == normalize_port_code(port_code),
            )
            .all()
        )
        voyage_id, voyage_docs = _current_open_voyage(docs)
        if voyage_id is None:
            return DocumentSignals()

        now = self.clock()
        overdue = 0
        dg_submitted = False
        for doc in voyage_docs:
            if doc.doc_code == DANGEROUS_GOODS_DOC_CODE and doc.status == DocumentStatusEnum.SUBMITTED.value:
                dg_submitted = True
            if not doc.mandatory or doc.status != DocumentStatusEnum.PENDING.value or doc.eta_utc is None:
                continue
            deadline = ensure_utc(doc.eta_utc) - timedelta(hours=doc.due_hours_before_eta or 0)
            if now > deadline:
                overdue += 1

        return DocumentSignals(
            any_overdue=overdue > 0,
            dangerous_goods_submitted=dg_submitted,
            overdue_count=overdue,
            voyage_id=voyage_id,
        )


def _current_open_voyage(docs: list[VoyageDocument]) -> tuple[str | None, list[VoyageDocument]]:
    by_voyage: dict[str, list[VoyageDocument]] = defaultdict(list)
    for doc in docs:
        by_voyage[doc.voyage_id].append(doc)

    open_statuses = {DocumentStatusEnum.PENDING.value, DocumentStatusEnum.REJECTED.value}
    candidates = []
    for voyage_id, voyage_docs in by_voyage.items():
        if not any(d.status in open_statuses for d in voyage_docs):
            continue
        etas = [ensure_utc(d.eta_utc) for d in voyage_docs if d.eta_utc is not None]
        candidates.append((max(etas) if etas else _NO_ETA, voyage_id, voyage_docs))

    if not candidates:
        return None, []
    _, voyage_id, voyage_docs = max(candidates, key=lambda c: (c[0], c[1]))
    return voyage_id, voyage_docs
