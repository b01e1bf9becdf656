"""Periodic alert sweep over watched ports.

Every SWEEP_INTERVAL_MINUTES the sweeper refreshes the cached products of
each watched port (ports with at least one active PortWatch subscription)
and runs a full alert evaluation. Ports are evaluated concurrently on a
small thread pool, each with its own database session; a failure in one
port is logged and recorded without affecting the others.

Usage:
    from app.modules.scheduler import build_sweeper
    sweeper = build_sweeper(runtime)
    sweeper.run_forever(stop_event)
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from app.models.port_watch import PortWatch
from app.modules.alert_engine import EvaluationResult
from app.modules.collaborators import normalize_port_code, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    started_at: datetime
    results: dict[str, EvaluationResult] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def alerts_fired(self) -> int:
        return sum(len(r.fired) for r in self.results.values())


def watched_port_codes(db: Session) -> list[str]:
    rows = (
        db.query(PortWatch.port_code)
        .filter(PortWatch.is_active == True)  # noqa: E712
        .distinct()
        .order_by(PortWatch.port_code)
        .all()
    )
    return [normalize_port_code(r[0]) for r in rows]


class PortSweeper:
    def __init__(
        self,
        evaluate: Callable[[str], EvaluationResult],
        watched_ports: Callable[[], list[str]],
        invalidate: Callable[[str], object] | None = None,
        interval_seconds: float = 900.0,
        max_workers: int = 4,
    ) -> None:
        self.evaluate = evaluate
        self.watched_ports = watched_ports
        self.invalidate = invalidate
        self.interval_seconds = interval_seconds
        self.max_workers = max_workers

    def run_once(self) -> SweepReport:
        report = SweepReport(started_at=utc_now())
        try:
            ports = self.watched_ports()
        except Exception as exc:
            logger.error("Sweep aborted: could not load watched ports: %s", exc)
            report.errors["*"] = str(exc)
            return report

        if not ports:
            logger.info("Sweep: no watched ports")
            return report

        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(ports)))) as pool:
            futures = {code: pool.submit(self._sweep_port, code) for code in ports}
            for code, future in futures.items():
                try:
                    report.results[code] = future.result()
                except Exception as exc:
                    logger.error("Sweep failed for %s: %s", code, exc, exc_info=True)
                    report.errors[code] = str(exc)

        logger.info(
            "Sweep complete: %d ports, %d alerts fired, %d errors",
            len(ports), report.alerts_fired, len(report.errors),
        )
        return report

    def run_forever(self, stop_event: threading.Event | None = None, max_sweeps: int | None = None) -> int:
        """Sweep until *stop_event* is set (or *max_sweeps* reached). Returns sweeps run."""
        stop_event = stop_event or threading.Event()
        sweeps = 0
        while not stop_event.is_set():
            self.run_once()
            sweeps += 1
            if max_sweeps is not None and sweeps >= max_sweeps:
                break
            stop_event.wait(self.interval_seconds)
        return sweeps

    def _sweep_port(self, code: str) -> EvaluationResult:
        if self.invalidate is not None:
            self.invalidate(code)
        return self.evaluate(code)


def build_sweeper(runtime, session_factory: Callable[[], Session] | None = None) -> PortSweeper:
    """PortSweeper wired to the database and a shared Runtime."""
    if session_factory is None:
        from app.database import SessionLocal
        session_factory = SessionLocal

    def _evaluate(code: str) -> EvaluationResult:
        db = session_factory()
        try:
            return runtime.alert_engine(db).evaluate_port(code)
        finally:
            db.close()

    def _watched() -> list[str]:
        db = session_factory()
        try:
            return watched_port_codes(db)
        finally:
            db.close()

    return PortSweeper(
        evaluate=_evaluate,
        watched_ports=_watched,
        invalidate=runtime.cache.invalidate,
        interval_seconds=runtime.settings.SWEEP_INTERVAL_MINUTES * 60,
        max_workers=runtime.settings.SWEEP_MAX_WORKERS,
    )
