from __future__ import annotations

import logging
import time
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.modules.alert_store import Alert
from app.modules.arrival_schedule import ArrivalSchedule
from app.modules.collaborators import PortUnavailable, normalize_port_code
from app.modules.runtime import Runtime
from app.schemas.alerts import (
    AcknowledgeResponse,
    AlertRead,
    EvaluationRead,
    WatchCreateRequest,
    WatchRead,
)
from app.schemas.error import ErrorResponse
from app.schemas.port_intel import (
    ArrivalScheduleRead,
    CongestionSnapshotRead,
    PreArrivalReportRead,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def _unavailable(result: PortUnavailable) -> JSONResponse:
    body = ErrorResponse(detail=result.message, code=result.reason)
    return JSONResponse(status_code=404, content=body.model_dump())


def _alert_read(alert: Alert) -> AlertRead:
    return AlertRead.model_validate(alert.to_dict())


def _schedule_read(schedule: ArrivalSchedule) -> ArrivalScheduleRead:
    report = schedule.report.to_dict()
    arrivals = []
    for entry, vessel in zip(schedule.arrivals, report["vessels"]):
        arrivals.append({
            **vessel,
            "documents": asdict(entry.documents) if entry.documents else None,
            "congestion_level": entry.congestion_level,
            "estimated_wait_hours": entry.estimated_wait_hours,
        })
    return ArrivalScheduleRead.model_validate({
        "port": report["port"],
        "window_hours": report["window_hours"],
        "current_congestion_level": schedule.congestion.level.value if schedule.congestion else None,
        "current_congestion_score": schedule.congestion.score if schedule.congestion else None,
        "arrival_count": len(arrivals),
        "arrivals": arrivals,
        "generated_at": report["generated_at"],
    })


# ---------------------------------------------------------------------------
# Congestion
# ---------------------------------------------------------------------------

@router.get("/ports/congestion", response_model=list[CongestionSnapshotRead], tags=["congestion"])
def list_port_congestion(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    """Congestion snapshot for every port with coordinates, highest score first."""
    snapshots = runtime.congestion_service(db).all_ports_congestion()
    return [s.to_dict() for s in snapshots]


@router.get("/ports/congestion/top", response_model=list[CongestionSnapshotRead], tags=["congestion"])
def top_congested_ports(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    """The most congested ports (score > 0)."""
    snapshots = runtime.congestion_service(db).top_congested_ports(limit=limit)
    return [s.to_dict() for s in snapshots]


@router.get(
    "/ports/{port_code}/congestion",
    response_model=CongestionSnapshotRead,
    responses={404: {"model": ErrorResponse}},
    tags=["congestion"],
)
def get_port_congestion(port_code: str, db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    """Current congestion snapshot for a port."""
    result = runtime.congestion_service(db).get_snapshot(port_code)
    if isinstance(result, PortUnavailable):
        return _unavailable(result)
    return result.to_dict()


# ---------------------------------------------------------------------------
# Pre-arrival
# ---------------------------------------------------------------------------

@router.get(
    "/ports/{port_code}/pre-arrival",
    response_model=PreArrivalReportRead,
    responses={404: {"model": ErrorResponse}},
    tags=["pre-arrival"],
)
def get_pre_arrivals(
    port_code: str,
    window_hours: float | None = Query(None, gt=0, le=720),
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    """Inbound vessels expected within the window, soonest first."""
    result = runtime.pre_arrival_service(db).get_report(port_code, window_hours)
    if isinstance(result, PortUnavailable):
        return _unavailable(result)
    return {**result.to_dict(), "inbound_vessels": result.inbound_count}


@router.get(
    "/ports/{port_code}/arrival-schedule",
    response_model=ArrivalScheduleRead,
    responses={404: {"model": ErrorResponse}},
    tags=["pre-arrival"],
)
def get_arrival_schedule(
    port_code: str,
    window_hours: float = Query(72.0, gt=0, le=720),
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    """ETA-ordered arrivals with document readiness and current congestion."""
    result = runtime.arrival_schedule(db, port_code, window_hours)
    if isinstance(result, PortUnavailable):
        return _unavailable(result)
    return _schedule_read(result)


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------

@router.post(
    "/ports/{port_code}/alerts/evaluate",
    response_model=EvaluationRead,
    responses={404: {"model": ErrorResponse}},
    tags=["alerts"],
)
def evaluate_port_alerts(port_code: str, db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    """Run the alert rules for a port now."""
    result = runtime.alert_engine(db).evaluate_port(port_code)
    if not result.available:
        return _unavailable(PortUnavailable(result.port_code, result.status))
    return EvaluationRead(
        port_code=result.port_code,
        status=result.status,
        fired=[_alert_read(a) for a in result.fired],
        suppressed=result.suppressed,
    )


@router.get("/ports/{port_code}/alerts", response_model=list[AlertRead], tags=["alerts"])
def list_port_alerts(
    port_code: str,
    include_acknowledged: bool = Query(False),
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    """Alert history for a port, newest first."""
    alerts = runtime.alert_engine(db).list_alerts(port_code, include_acknowledged=include_acknowledged)
    return [_alert_read(a) for a in alerts]


@router.post(
    "/ports/{port_code}/alerts/{alert_id}/acknowledge",
    response_model=AcknowledgeResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["alerts"],
)
def acknowledge_alert(
    port_code: str,
    alert_id: str,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    """Mark an alert acknowledged. Acknowledging twice is a no-op."""
    code = normalize_port_code(port_code)
    if not runtime.alert_engine(db).acknowledge(code, alert_id):
        raise HTTPException(status_code=404, detail="Alert not found")
    return AcknowledgeResponse(port_code=code, alert_id=alert_id, acknowledged=True)


# ---------------------------------------------------------------------------
# Port watches
# ---------------------------------------------------------------------------

@router.get("/watches", response_model=list[WatchRead], tags=["watches"])
def list_watches(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Active port watches (paginated)."""
    from app.models.port_watch import PortWatch
    return (
        db.query(PortWatch)
        .filter(PortWatch.is_active == True)  # noqa: E712
        .order_by(PortWatch.port_code)
        .offset(skip).limit(limit).all()
    )


@router.post("/watches", response_model=WatchRead, status_code=201, tags=["watches"])
def add_watch(body: WatchCreateRequest, db: Session = Depends(get_db)):
    """Subscribe to a port's alert stream. Re-subscribing reactivates the watch."""
    from app.models.port import Port
    from app.models.port_watch import PortWatch

    if db.query(Port).filter(Port.unlocode == body.port_code).first() is None:
        raise HTTPException(status_code=404, detail="Port not found")

    entry = (
        db.query(PortWatch)
        .filter(PortWatch.port_code == body.port_code, PortWatch.subscriber == body.subscriber)
        .first()
    )
    if entry is None:
        entry = PortWatch(port_code=body.port_code, subscriber=body.subscriber, is_active=True)
        db.add(entry)
    else:
        entry.is_active = True
    db.commit()
    db.refresh(entry)
    logger.info("Watch added: %s -> %s", body.subscriber, body.port_code)
    return entry


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------

@router.get("/health", tags=["system"])
def health_check(db: Session = Depends(get_db), runtime: Runtime = Depends(get_runtime)):
    """Health check with DB latency measurement."""
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    t0 = time.time()
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError as e:
        db_status = f"error: {e}"
    latency_ms = round((time.time() - t0) * 1000, 1)

    return {
        "status": "ok",
        "version": "0.1.0",
        "database": {"status": db_status, "latency_ms": latency_ms},
        "cache_entries": len(runtime.cache),
        "notification_channels": [c.name for c in runtime.notifier.channels],
    }
