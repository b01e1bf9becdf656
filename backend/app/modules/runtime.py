"""Process-wide wiring for the port intelligence services.

One Runtime per process owns the objects that must be shared across
requests and sweep workers: the snapshot cache, the notifier, the per-port
alert locks and the loaded alert rules. Services themselves are cheap and
are built per database session.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.config import Settings, settings as default_settings
from app.modules.alert_engine import AlertEngine, AlertRules, load_alert_rules
from app.modules.alert_store import PortLocks, SqlAlertStore
from app.modules.arrival_schedule import ArrivalSchedule, build_arrival_schedule
from app.modules.collaborators import PortUnavailable
from app.modules.congestion_engine import (
    CongestionAlertLog,
    CongestionService,
    CongestionSnapshot,
    CongestionThresholds,
    format_congestion_summary,
)
from app.modules.notifier import Notifier, load_channels
from app.modules.pre_arrival import PreArrivalService, PreArrivalThresholds
from app.modules.snapshot_cache import SnapshotCache
from app.modules.sql_sources import SqlDocumentSignalProvider, SqlPortDirectory, SqlPositionStore

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    cache: SnapshotCache
    notifier: Notifier
    locks: PortLocks
    rules: AlertRules
    congestion_log: CongestionAlertLog

    def congestion_service(self, db: Session) -> CongestionService:
        hook = self._notify_congestion if self.settings.CONGESTION_DIRECT_NOTIFY else None
        return CongestionService(
            positions=SqlPositionStore(db),
            ports=SqlPortDirectory(db),
            cache=self.cache,
            thresholds=CongestionThresholds.from_settings(self.settings),
            alert_log=self.congestion_log,
            on_high_congestion=hook,
        )

    def pre_arrival_service(self, db: Session) -> PreArrivalService:
        return PreArrivalService(
            positions=SqlPositionStore(db),
            ports=SqlPortDirectory(db),
            cache=self.cache,
            thresholds=PreArrivalThresholds.from_settings(self.settings),
        )

    def alert_engine(self, db: Session) -> AlertEngine:
        return AlertEngine(
            congestion=self.congestion_service(db),
            pre_arrival=self.pre_arrival_service(db),
            documents=SqlDocumentSignalProvider(db),
            store=SqlAlertStore(db),
            notifier=self.notifier,
            rules=self.rules,
            locks=self.locks,
            **AlertEngine.tuning_from_settings(self.settings),
        )

    def arrival_schedule(self, db: Session, port_code: str, window_hours: float) -> ArrivalSchedule | PortUnavailable:
        return build_arrival_schedule(
            self.congestion_service(db),
            self.pre_arrival_service(db),
            SqlDocumentSignalProvider(db),
            port_code,
            window_hours,
        )

    def reload_rules(self) -> AlertRules:
        """Force-reload alert rules from disk (e.g. after YAML edits)."""
        self.rules = load_alert_rules(self.settings.ALERT_RULES_CONFIG)
        return self.rules

    def close(self) -> None:
        self.notifier.shutdown(wait=True)

    def _notify_congestion(self, snapshot: CongestionSnapshot) -> None:
        subject = f"Congestion {snapshot.level.value.upper()} at {snapshot.port.code}"
        self.notifier.dispatch_text(subject, format_congestion_summary(snapshot), ref=f"congestion:{snapshot.port.code}")


def build_runtime(s: Settings | None = None) -> Runtime:
    s = s or default_settings
    return Runtime(
        settings=s,
        cache=SnapshotCache(ttl_seconds=s.SNAPSHOT_CACHE_TTL_SECONDS),
        notifier=Notifier(
            load_channels(s.NOTIFY_CONFIG),
            timeout_seconds=s.NOTIFY_TIMEOUT_SECONDS,
            max_workers=s.NOTIFY_MAX_WORKERS,
        ),
        locks=PortLocks(),
        rules=load_alert_rules(s.ALERT_RULES_CONFIG),
        congestion_log=CongestionAlertLog(s.CONGESTION_ALERT_LOG),
    )
