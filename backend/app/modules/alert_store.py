"""Append-only arrival alert history, one log per port.

The engine depends on the AlertStore interface; SqlAlertStore keeps the
history in the port_alerts table. Rows that cannot be mapped back to an
Alert (unknown type or severity, missing timestamp) are skipped with a
warning instead of failing the whole read.
"""
from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.models.base import AlertSeverityEnum, AlertTypeEnum
from app.models.port_alert import PortAlert
from app.modules.collaborators import ensure_utc, normalize_port_code, utc_now

logger = logging.getLogger(__name__)


def port_pseudo_id(port_code: str) -> str:
    """Vessel reference used for port-level alerts such as HIGH_CONGESTION."""
    return f"PORT_{normalize_port_code(port_code)}"


@dataclass(frozen=True)
class Alert:
    port_code: str
    alert_type: AlertTypeEnum
    severity: AlertSeverityEnum
    vessel_ref: str
    vessel_name: str
    message: str
    created_at: datetime = field(default_factory=utc_now)
    acknowledged: bool = False
    alert_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["alert_type"] = self.alert_type.value
        data["severity"] = self.severity.value
        data["created_at"] = self.created_at.isoformat()
        return data


class AlertStore(ABC):
    @abstractmethod
    def load(self, port_code: str, limit: int | None = None) -> list[Alert]:
        """Alerts for a port, oldest first, capped to the *limit* most recent."""
        ...

    @abstractmethod
    def append(self, alert: Alert) -> None:
        ...

    @abstractmethod
    def acknowledge(self, port_code: str, alert_id: str) -> bool:
        """Mark an alert acknowledged. True if the id exists for the port."""
        ...


class InMemoryAlertStore(AlertStore):
    """Process-local store, used when no database is configured."""

    def __init__(self) -> None:
        self._logs: dict[str, list[Alert]] = {}

    def load(self, port_code: str, limit: int | None = None) -> list[Alert]:
        alerts = list(self._logs.get(normalize_port_code(port_code), []))
        return alerts[-limit:] if limit else alerts

    def append(self, alert: Alert) -> None:
        self._logs.setdefault(normalize_port_code(alert.port_code), []).append(alert)

    def acknowledge(self, port_code: str, alert_id: str) -> bool:
        log = self._logs.get(normalize_port_code(port_code), [])
        for i, alert in enumerate(log):
            if alert.alert_id == alert_id:
                if not alert.acknowledged:
                    log[i] = replace(alert, acknowledged=True)
                return True
        return False


class SqlAlertStore(AlertStore):
    def __init__(self, db: Session) -> None:
        self.db = db

    def load(self, port_code: str, limit: int | None = None) -> list[Alert]:
        query = (
            self.db.query(PortAlert)
            .filter(PortAlert.port_code == normalize_port_code(port_code))
            .order_by(PortAlert.created_utc.desc())
        )
        if limit:
            query = query.limit(limit)
        alerts = []
        for row in query.all():
            alert = _row_to_alert(row)
            if alert is not None:
                alerts.append(alert)
        alerts.reverse()
        return alerts

    def append(self, alert: Alert) -> None:
        self.db.add(PortAlert(
            alert_id=alert.alert_id,
            port_code=normalize_port_code(alert.port_code),
            alert_type=alert.alert_type.value,
            severity=alert.severity.value,
            vessel_ref=alert.vessel_ref,
            vessel_name=alert.vessel_name,
            message=alert.message,
            acknowledged=alert.acknowledged,
            created_utc=alert.created_at,
        ))
        self.db.commit()

    def acknowledge(self, port_code: str, alert_id: str) -> bool:
        row = (
            self.db.query(PortAlert)
            .filter(
                PortAlert.port_code == normalize_port_code(port_code),
                PortAlert.alert_id == alert_id,
            )
            .first()
        )
        if row is None:
            return False
        if not row.acknowledged:
            row.acknowledged = True
            self.db.commit()
        return True


def _row_to_alert(row: PortAlert) -> Optional[Alert]:
    try:
        alert_type = AlertTypeEnum(row.alert_type)
        severity = AlertSeverityEnum(row.severity)
    except ValueError as exc:
        logger.warning("Skipping malformed alert %s for %s: %s", row.alert_id, row.port_code, exc)
        return None
    if row.created_utc is None:
        logger.warning("Skipping alert %s for %s: missing timestamp", row.alert_id, row.port_code)
        return None
    return Alert(
        alert_id=row.alert_id,
        port_code=row.port_code,
        alert_type=alert_type,
        severity=severity,
        vessel_ref=row.vessel_ref,
        vessel_name=row.vessel_name or row.vessel_ref,
        message=row.message or "",
        created_at=ensure_utc(row.created_utc),
        acknowledged=bool(row.acknowledged),
    )


class PortLocks:
    """One lock per port code; serializes the dedup-scan + append cycle."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def for_port(self, port_code: str) -> threading.Lock:
        key = normalize_port_code(port_code)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock
