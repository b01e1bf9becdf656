"""Port arrival alert engine.

Evaluates a port's congestion snapshot, pre-arrival forecast and document
readiness against the alert rules, suppresses repeats, appends survivors to
the port's alert history and hands them to the notifier.

Alert types:
  HIGH_CONGESTION: port level in rules.congestion_levels (once per port)
  ETA_IMMINENT: inbound vessel ETA <= rules.eta_threshold_hours
  DOCUMENT_OVERDUE: a mandatory pre-arrival document is overdue
  DANGEROUS_GOODS_INBOUND: a dangerous-goods manifest has been submitted

Dedup: an alert is suppressed while an unacknowledged alert with the same
(type, vessel) for the port is younger than the dedup window (60 min).
"""
from __future__ import annotations

import logging
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable

import yaml
from pydantic import BaseModel, Field, ValidationError

from app.config import Settings
from app.models.base import AlertSeverityEnum, AlertTypeEnum, CongestionLevelEnum
from app.modules.alert_store import Alert, AlertStore, PortLocks, port_pseudo_id
from app.modules.collaborators import (
    DocumentSignalProvider,
    DocumentSignals,
    PortUnavailable,
    normalize_port_code,
    utc_now,
)
from app.modules.congestion_engine import CongestionService, CongestionSnapshot
from app.modules.notifier import Notifier
from app.modules.pre_arrival import PreArrivalReport, PreArrivalService, PreArrivalVessel

logger = logging.getLogger(__name__)

STATUS_OK = "ok"


class AlertRules(BaseModel):
    eta_threshold_hours: float = Field(default=6.0, gt=0)
    congestion_levels: set[CongestionLevelEnum] = Field(
        default_factory=lambda: {CongestionLevelEnum.HIGH, CongestionLevelEnum.CRITICAL}
    )
    disabled_types: set[AlertTypeEnum] = Field(default_factory=set)

    def is_enabled(self, alert_type: AlertTypeEnum) -> bool:
        return alert_type not in self.disabled_types


def load_alert_rules(path: str | Path) -> AlertRules:
    """Rules from alert_rules.yaml; defaults when the file is missing or invalid."""
    config_path = Path(path)
    if not config_path.exists():
        logger.info("alert rules not found at %s, using defaults", config_path)
        return AlertRules()
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        return AlertRules.model_validate(raw)
    except (yaml.YAMLError, ValidationError) as exc:
        logger.warning("Invalid alert rules %s: %s, using defaults", config_path, exc)
        return AlertRules()


def write_default_rules(path: str | Path) -> bool:
    """Seed alert_rules.yaml with defaults. Returns False if it already exists."""
    config_path = Path(path)
    if config_path.exists():
        return False
    config_path.parent.mkdir(parents=True, exist_ok=True)
    defaults = AlertRules()
    with open(config_path, "w") as f:
        yaml.safe_dump({
            "eta_threshold_hours": defaults.eta_threshold_hours,
            "congestion_levels": sorted(level.value for level in defaults.congestion_levels),
            "disabled_types": [],
        }, f, sort_keys=False)
    return True


@dataclass
class EvaluationResult:
    port_code: str
    status: str = STATUS_OK
    fired: list[Alert] = field(default_factory=list)
    suppressed: int = 0
    deliveries: list[Future] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return self.status == STATUS_OK


def is_duplicate(
    existing: list[Alert],
    alert_type: AlertTypeEnum,
    vessel_ref: str,
    now: datetime,
    window: timedelta,
) -> bool:
    return any(
        a.alert_type == alert_type
        and a.vessel_ref == vessel_ref
        and not a.acknowledged
        and now - a.created_at < window
        for a in existing
    )


class AlertEngine:
    def __init__(
        self,
        congestion: CongestionService,
        pre_arrival: PreArrivalService,
        documents: DocumentSignalProvider,
        store: AlertStore,
        notifier: Notifier | None = None,
        rules: AlertRules | None = None,
        locks: PortLocks | None = None,
        dedup_window: timedelta = timedelta(minutes=60),
        eta_critical_hours: float = 2.0,
        history_limit: int = 500,
        pre_arrival_window_hours: float = 48.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.congestion = congestion
        self.pre_arrival = pre_arrival
        self.documents = documents
        self.store = store
        self.notifier = notifier
        self.rules = rules or AlertRules()
        self.locks = locks or PortLocks()
        self.dedup_window = dedup_window
        self.eta_critical_hours = eta_critical_hours
        self.history_limit = history_limit
        self.pre_arrival_window_hours = pre_arrival_window_hours
        self.clock = clock

    @classmethod
    def tuning_from_settings(cls, s: Settings) -> dict:
        return {
            "dedup_window": timedelta(minutes=s.ALERT_DEDUP_WINDOW_MINUTES),
            "eta_critical_hours": s.ETA_CRITICAL_HOURS,
            "history_limit": s.ALERT_HISTORY_LIMIT,
            "pre_arrival_window_hours": s.PRE_ARRIVAL_WINDOW_HOURS,
        }

    # ── Evaluation ───────────────────────────────────────────────────────────

    def evaluate_port(self, port_code: str) -> EvaluationResult:
        """Run every rule for a port and return the alerts fired in this pass."""
        code = normalize_port_code(port_code)
        snapshot = self.congestion.get_snapshot(code)
        report = self.pre_arrival.get_report(code, self.pre_arrival_window_hours)

        if isinstance(snapshot, PortUnavailable) and isinstance(report, PortUnavailable):
            logger.info("Alert evaluation skipped for %s: %s", code, snapshot.reason)
            return EvaluationResult(port_code=code, status=snapshot.reason)

        now = self.clock()
        candidates: list[Alert] = []
        if isinstance(snapshot, CongestionSnapshot):
            candidates.extend(self._congestion_alerts(code, snapshot, now))
        if isinstance(report, PreArrivalReport):
            for vessel in report.vessels:
                candidates.extend(self._vessel_alerts(code, vessel, now))

        result = EvaluationResult(port_code=code)
        with self.locks.for_port(code):
            existing = self.store.load(code, limit=self.history_limit)
            for alert in candidates:
                if is_duplicate(existing, alert.alert_type, alert.vessel_ref, now, self.dedup_window):
                    result.suppressed += 1
                    continue
                self.store.append(alert)
                existing.append(alert)
                result.fired.append(alert)

        for alert in result.fired:
            logger.info(
                "Alert %s %s at %s for %s", alert.severity.value, alert.alert_type.value,
                code, alert.vessel_ref,
            )
            if self.notifier is not None:
                result.deliveries.extend(self.notifier.dispatch(alert))

        logger.info(
            "Evaluated %s: %d fired, %d suppressed as duplicates",
            code, len(result.fired), result.suppressed,
        )
        return result

    def _congestion_alerts(self, code: str, snapshot: CongestionSnapshot, now: datetime) -> list[Alert]:
        if not self.rules.is_enabled(AlertTypeEnum.HIGH_CONGESTION):
            return []
        if snapshot.level not in self.rules.congestion_levels:
            return []
        severity = (
            AlertSeverityEnum.CRITICAL
            if snapshot.level == CongestionLevelEnum.CRITICAL
            else AlertSeverityEnum.WARNING
        )
        name = snapshot.port.name or code
        message = (
            f"{name} congestion level {snapshot.level.value.upper()} - score {snapshot.score}, "
            f"{snapshot.counts.waiting} vessels waiting, est. wait {snapshot.estimated_wait_hours:g}h"
        )
        return [Alert(
            port_code=code,
            alert_type=AlertTypeEnum.HIGH_CONGESTION,
            severity=severity,
            vessel_ref=port_pseudo_id(code),
            vessel_name=name,
            message=message,
            created_at=now,
        )]

    def _vessel_alerts(self, code: str, vessel: PreArrivalVessel, now: datetime) -> list[Alert]:
        alerts: list[Alert] = []
        label = f"{vessel.vessel_name} ({vessel.vessel_id})"

        if self.rules.is_enabled(AlertTypeEnum.ETA_IMMINENT) and vessel.eta_hours <= self.rules.eta_threshold_hours:
            severity = (
                AlertSeverityEnum.CRITICAL
                if vessel.eta_hours <= self.eta_critical_hours
                else AlertSeverityEnum.WARNING
            )
            alerts.append(self._vessel_alert(
                code, AlertTypeEnum.ETA_IMMINENT, severity, vessel, now,
                f"{label} ETA {vessel.eta_hours:.1f}h - {vessel.distance_nm:.0f}nm at "
                f"{vessel.speed_knots:.1f}kt - confidence: {vessel.confidence.value}",
            ))

        wants_docs = (
            self.rules.is_enabled(AlertTypeEnum.DOCUMENT_OVERDUE)
            or self.rules.is_enabled(AlertTypeEnum.DANGEROUS_GOODS_INBOUND)
        )
        if not wants_docs:
            return alerts
        signals = self._document_signals(vessel.vessel_id, code)
        if signals is None:
            return alerts
        voyage = signals.voyage_id or "unknown"

        if self.rules.is_enabled(AlertTypeEnum.DOCUMENT_OVERDUE) and signals.any_overdue:
            count = signals.overdue_count or 1
            alerts.append(self._vessel_alert(
                code, AlertTypeEnum.DOCUMENT_OVERDUE, AlertSeverityEnum.WARNING, vessel, now,
                f"{label} has {count} overdue document(s) - voyage {voyage}, ETA {vessel.eta_hours:.1f}h",
            ))

        if self.rules.is_enabled(AlertTypeEnum.DANGEROUS_GOODS_INBOUND) and signals.dangerous_goods_submitted:
            alerts.append(self._vessel_alert(
                code, AlertTypeEnum.DANGEROUS_GOODS_INBOUND, AlertSeverityEnum.WARNING, vessel, now,
                f"{label} has dangerous goods declared - DG manifest submitted for voyage {voyage}, "
                f"ETA {vessel.eta_hours:.1f}h",
            ))
        return alerts

    def _vessel_alert(
        self, code: str, alert_type: AlertTypeEnum, severity: AlertSeverityEnum,
        vessel: PreArrivalVessel, now: datetime, message: str,
    ) -> Alert:
        return Alert(
            port_code=code,
            alert_type=alert_type,
            severity=severity,
            vessel_ref=vessel.vessel_id,
            vessel_name=vessel.vessel_name,
            message=message,
            created_at=now,
        )

    def _document_signals(self, vessel_id: str, code: str) -> DocumentSignals | None:
        try:
            return self.documents.get_signals(vessel_id, code)
        except Exception as exc:
            logger.warning("Document signals unavailable for %s at %s: %s", vessel_id, code, exc)
            return None

    # ── History ──────────────────────────────────────────────────────────────

    def list_alerts(self, port_code: str, include_acknowledged: bool = False) -> list[Alert]:
        """Alerts for a port, newest first."""
        alerts = self.store.load(port_code, limit=self.history_limit)
        if not include_acknowledged:
            alerts = [a for a in alerts if not a.acknowledged]
        return list(reversed(alerts))

    def acknowledge(self, port_code: str, alert_id: str) -> bool:
        code = normalize_port_code(port_code)
        with self.locks.for_port(code):
            found = self.store.acknowledge(code, alert_id)
        if found:
            logger.info("Alert %s at %s acknowledged", alert_id, code)
        return found
