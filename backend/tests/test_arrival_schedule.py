"""Tests for the arrival schedule and the runtime wiring around it."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.models.base import DocumentStatusEnum
from app.models.voyage_document import VoyageDocument
from app.modules.arrival_schedule import ArrivalSchedule
from app.modules.collaborators import PortUnavailable
from app.utils.geo import offset_position

SGSIN = (1.2644, 103.8217)


def _inbound(add_position, imo, distance_nm, speed, name=None):
    lat, lon = offset_position(*SGSIN, 270.0, distance_nm)
    add_position(imo, lat, lon, sog=speed, heading=90.0, nav_status=0, name=name)


class TestArrivalSchedule:
    def test_orders_by_eta_with_documents_and_congestion(self, db, runtime, add_port, add_position):
        add_port()
        _inbound(add_position, "9775891", 60.0, 12.0, name="ORE BRASIL")
        _inbound(add_position, "9839187", 30.0, 15.0, name="BIG ORANGE XVIII")
        add_position("9811000", 1.27, 103.82, sog=0.3, nav_status=1)
        db.add(VoyageDocument(
            voyage_id="V-7", imo="9775891", port_code="SGSIN", doc_code="dangerous-goods",
            mandatory=True, status=DocumentStatusEnum.SUBMITTED.value, due_hours_before_eta=24.0,
            eta_utc=datetime.now(timezone.utc) + timedelta(hours=5),
        ))
        db.add(VoyageDocument(
            voyage_id="V-7", imo="9775891", port_code="SGSIN", doc_code="crew-list",
            mandatory=True, status=DocumentStatusEnum.PENDING.value, due_hours_before_eta=2.0,
            eta_utc=datetime.now(timezone.utc) + timedelta(hours=5),
        ))
        db.commit()

        schedule = runtime.arrival_schedule(db, "SGSIN", 72.0)

        assert isinstance(schedule, ArrivalSchedule)
        assert [a.vessel.vessel_id for a in schedule.arrivals] == ["9839187", "9775891"]
        assert schedule.arrivals[1].documents.dangerous_goods_submitted
        assert schedule.arrivals[0].documents.voyage_id is None
        assert schedule.congestion.counts.anchorage == 1
        assert all(a.congestion_level == "moderate" for a in schedule.arrivals)

    def test_window_limits_arrivals(self, db, runtime, add_port, add_position):
        add_port()
        _inbound(add_position, "9775891", 60.0, 12.0)
        assert runtime.arrival_schedule(db, "SGSIN", 2.0).arrivals == []

    def test_unknown_port(self, db, runtime):
        assert isinstance(runtime.arrival_schedule(db, "ZZZZZ", 72.0), PortUnavailable)


class TestRuntime:
    def test_services_share_cache(self, db, runtime, add_port):
        add_port()
        runtime.congestion_service(db).get_snapshot("SGSIN")
        runtime.pre_arrival_service(db).get_report("SGSIN")
        assert len(runtime.cache) == 2

    def test_direct_notify_hook_is_opt_in(self, db, runtime, test_settings):
        assert runtime.congestion_service(db).on_high_congestion is None
        runtime.settings = test_settings.model_copy(update={"CONGESTION_DIRECT_NOTIFY": True})
        assert runtime.congestion_service(db).on_high_congestion is not None

    def test_reload_rules(self, runtime, test_settings):
        with open(test_settings.ALERT_RULES_CONFIG, "w") as f:
            f.write("eta_threshold_hours: 3\n")
        assert runtime.reload_rules().eta_threshold_hours == 3
        assert runtime.rules.eta_threshold_hours == 3

    def test_engine_uses_tuned_settings(self, db, runtime):
        engine = runtime.alert_engine(db)
        assert engine.dedup_window == timedelta(minutes=runtime.settings.ALERT_DEDUP_WINDOW_MINUTES)
        assert engine.pre_arrival_window_hours == runtime.settings.PRE_ARRIVAL_WINDOW_HOURS
