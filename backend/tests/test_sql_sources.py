"""Tests for the SQLAlchemy-backed position, port and document collaborators."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.models.base import DocumentStatusEnum
from app.models.voyage_document import VoyageDocument
from app.modules.collaborators import DocumentSignals
from app.modules.sql_sources import SqlDocumentSignalProvider, SqlPortDirectory, SqlPositionStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestSqlPositionStore:
    def test_returns_recent_fixes_newest_first(self, db, add_position):
        add_position("9811000", 1.30, 103.80, sog=0.5, age_minutes=30, name="EVER GIVEN")
        add_position("9811000", 1.31, 103.81, sog=0.4, age_minutes=5, name="EVER GIVEN")
        add_position("9792819", 1.40, 103.90, sog=12.0, heading=270.0, nav_status=0, age_minutes=15)

        since = datetime.now(timezone.utc) - timedelta(hours=1)
        fixes = SqlPositionStore(db).get_recent_positions(since)

        assert [f.vessel_id for f in fixes] == ["9811000", "9792819", "9811000"]
        assert fixes[0].vessel_name == "EVER GIVEN"
        assert fixes[0].coordinate.lat == 1.31
        assert fixes[0].observed_at.tzinfo is not None
        assert fixes[1].heading_deg == 270.0
        assert fixes[1].nav_status == 0

    def test_excludes_older_than_since(self, db, add_position):
        add_position("9811000", 1.30, 103.80, age_minutes=8 * 60)
        since = datetime.now(timezone.utc) - timedelta(hours=6)
        assert SqlPositionStore(db).get_recent_positions(since) == []

    def test_limit(self, db, add_position):
        for i in range(5):
            add_position("9811000", 1.30, 103.80, age_minutes=i + 1)
        since = datetime.now(timezone.utc) - timedelta(hours=1)
        assert len(SqlPositionStore(db).get_recent_positions(since, limit=3)) == 3

    def test_missing_speed_and_heading_are_kept(self, db, add_position):
        add_position("9811000", 1.30, 103.80)
        since = datetime.now(timezone.utc) - timedelta(hours=1)
        fix = SqlPositionStore(db).get_recent_positions(since)[0]
        assert fix.speed_knots is None
        assert fix.speed_or_zero == 0.0
        assert fix.heading_deg is None


class TestSqlPortDirectory:
    def test_get_port_case_insensitive(self, db, add_port):
        add_port()
        port = SqlPortDirectory(db).get_port("sgsin")
        assert port.code == "SGSIN"
        assert port.coordinate.lat == 1.2644

    def test_port_without_coordinates(self, db, add_port):
        add_port(code="XXNOC", name="No Coordinates", country="XX", lat=None, lon=None)
        assert SqlPortDirectory(db).get_port("XXNOC").coordinate is None

    def test_unknown_port(self, db):
        assert SqlPortDirectory(db).get_port("ZZZZZ") is None

    def test_list_ports_sorted(self, db, add_port):
        add_port(code="SGSIN")
        add_port(code="NLRTM", name="Rotterdam", country="Netherlands", lat=51.9225, lon=4.4792)
        assert [p.code for p in SqlPortDirectory(db).list_ports()] == ["NLRTM", "SGSIN"]


class TestSqlDocumentSignalProvider:
    def _doc(self, db, doc_code, status, eta_hours=10.0, due=24.0, mandatory=True, imo="9811000", port="SGSIN",
             voyage=None):
        db.add(VoyageDocument(
            voyage_id=voyage or f"{imo}-{port}",
            imo=imo,
            port_code=port,
            doc_code=doc_code,
            mandatory=mandatory,
            status=status.value,
            due_hours_before_eta=due,
            eta_utc=NOW + timedelta(hours=eta_hours),
        ))
        db.commit()

    def provider(self, db):
        return SqlDocumentSignalProvider(db, clock=lambda: NOW)

    def test_no_documents(self, db):
        signals = self.provider(db).get_signals("9811000", "SGSIN")
        assert not signals.any_overdue
        assert not signals.dangerous_goods_submitted
        assert signals.voyage_id is None

    def test_pending_past_deadline_is_overdue(self, db):
        self._doc(db, "crew-list", DocumentStatusEnum.PENDING, eta_hours=10.0, due=24.0)
        signals = self.provider(db).get_signals("9811000", "sgsin")
        assert signals.any_overdue
        assert signals.overdue_count == 1
        assert signals.voyage_id == "9811000-SGSIN"

    def test_pending_before_deadline_is_not_overdue(self, db):
        self._doc(db, "crew-list", DocumentStatusEnum.PENDING, eta_hours=30.0, due=24.0)
        assert not self.provider(db).get_signals("9811000", "SGSIN").any_overdue

    def test_submitted_or_optional_documents_are_not_overdue(self, db):
        self._doc(db, "crew-list", DocumentStatusEnum.SUBMITTED)
        self._doc(db, "ship-stores", DocumentStatusEnum.PENDING, mandatory=False)
        assert not self.provider(db).get_signals("9811000", "SGSIN").any_overdue

    def test_dangerous_goods_submitted_on_open_voyage(self, db):
        self._doc(db, "dangerous-goods", DocumentStatusEnum.SUBMITTED)
        self._doc(db, "health-declaration", DocumentStatusEnum.PENDING, eta_hours=30.0)
        assert self.provider(db).get_signals("9811000", "SGSIN").dangerous_goods_submitted

    def test_dangerous_goods_pending_is_not_flagged(self, db):
        self._doc(db, "dangerous-goods", DocumentStatusEnum.PENDING, eta_hours=40.0)
        assert not self.provider(db).get_signals("9811000", "SGSIN").dangerous_goods_submitted

    def test_closed_voyage_is_ignored(self, db):
        self._doc(db, "dangerous-goods", DocumentStatusEnum.SUBMITTED, eta_hours=-90 * 24, voyage="OLD")
        self._doc(db, "crew-list", DocumentStatusEnum.VERIFIED, eta_hours=-90 * 24, voyage="OLD")
        signals = self.provider(db).get_signals("9811000", "SGSIN")
        assert signals == DocumentSignals()

    def test_rejected_document_keeps_voyage_open(self, db):
        self._doc(db, "dangerous-goods", DocumentStatusEnum.SUBMITTED, voyage="V-9")
        self._doc(db, "crew-list", DocumentStatusEnum.REJECTED, voyage="V-9")
        signals = self.provider(db).get_signals("9811000", "SGSIN")
        assert signals.voyage_id == "V-9"
        assert signals.dangerous_goods_submitted
        assert not signals.any_overdue

    def test_signals_come_from_latest_open_voyage(self, db):
        self._doc(db, "dangerous-goods", DocumentStatusEnum.SUBMITTED, eta_hours=-48.0, voyage="OLD")
        self._doc(db, "crew-list", DocumentStatusEnum.PENDING, eta_hours=-48.0, voyage="OLD")
        self._doc(db, "crew-list", DocumentStatusEnum.PENDING, eta_hours=40.0, voyage="NEW")
        signals = self.provider(db).get_signals("9811000", "SGSIN")
        assert signals.voyage_id == "NEW"
        assert not signals.dangerous_goods_submitted
        assert not signals.any_overdue

    def test_other_port_documents_ignored(self, db):
        self._doc(db, "crew-list", DocumentStatusEnum.PENDING, port="NLRTM")
        assert not self.provider(db).get_signals("9811000", "SGSIN").any_overdue
