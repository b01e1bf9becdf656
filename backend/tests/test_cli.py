"""Tests for PortWatch CLI commands."""
from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from app.cli import app
from app.models.base import AlertSeverityEnum, AlertTypeEnum
from app.models.port_watch import PortWatch
from app.modules.alert_engine import EvaluationResult
from app.modules.alert_store import Alert
from app.modules.collaborators import Coordinate, PortInfo, PortUnavailable, PositionFix
from app.modules.congestion_engine import build_congestion_snapshot
from app.modules.pre_arrival import predict_pre_arrivals
from app.modules.scheduler import SweepReport

runner = CliRunner()

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
SINGAPORE = PortInfo("SGSIN", "Singapore", "Singapore", Coordinate(1.2644, 103.8217))


def _anchored_snapshot():
    fixes = [
        PositionFix("9811000", "EVER GIVEN", Coordinate(1.27, 103.82), 0.2, NOW, nav_status=1),
        PositionFix("9792819", "MSC OSCAR", Coordinate(1.28, 103.83), 0.1, NOW, nav_status=1),
    ]
    return build_congestion_snapshot(SINGAPORE, fixes, now=NOW)


def _alert():
    return Alert(
        port_code="SGSIN",
        alert_type=AlertTypeEnum.HIGH_CONGESTION,
        severity=AlertSeverityEnum.WARNING,
        vessel_ref="PORT_SGSIN",
        vessel_name="Singapore",
        message="Singapore congestion level HIGH - score 30",
        created_at=NOW,
    )


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


@patch("app.modules.alert_engine.write_default_rules", return_value=True)
@patch("app.database.SessionLocal")
@patch("app.database.init_db")
def test_init(mock_init, mock_sl, mock_rules):
    """init creates tables, seeds ports and writes default alert rules."""
    with patch("scripts.seed_ports.seed_ports", return_value={"inserted": 12, "skipped": 0, "backfilled": 0}):
        result = runner.invoke(app, ["init"])

    assert result.exit_code == 0
    mock_init.assert_called_once()
    mock_rules.assert_called_once()
    assert "12 inserted" in result.output
    mock_sl.return_value.close.assert_called_once()


@patch("app.modules.alert_engine.write_default_rules", return_value=False)
@patch("app.database.SessionLocal")
@patch("app.database.init_db")
def test_init_demo_loads_sample_traffic(mock_init, mock_sl, mock_rules):
    """init --demo also generates sample traffic around Singapore."""
    with patch("scripts.seed_ports.seed_ports", return_value={"inserted": 0, "skipped": 12, "backfilled": 0}), \
         patch("scripts.generate_sample_data.generate_sample_traffic",
               return_value={"vessels": 8, "positions": 96, "documents": 4}) as mock_sample:
        result = runner.invoke(app, ["init", "--demo"])

    assert result.exit_code == 0
    mock_sample.assert_called_once_with(mock_sl.return_value, "SGSIN")
    assert "already exists" in result.output
    assert "8 vessels" in result.output


# ---------------------------------------------------------------------------
# congestion / top / pre-arrival
# ---------------------------------------------------------------------------


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_congestion(mock_runtime, mock_sl):
    mock_runtime.return_value.congestion_service.return_value.get_snapshot.return_value = _anchored_snapshot()
    result = runner.invoke(app, ["congestion", "SGSIN", "--vessels"])

    assert result.exit_code == 0
    assert "HIGH" in result.output
    assert "score 30" in result.output
    assert "EVER GIVEN" in result.output
    mock_runtime.return_value.close.assert_called_once()


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_congestion_unknown_port(mock_runtime, mock_sl):
    mock_runtime.return_value.congestion_service.return_value.get_snapshot.return_value = (
        PortUnavailable("ZZZZZ", "not_found")
    )
    result = runner.invoke(app, ["congestion", "ZZZZZ"])
    assert result.exit_code == 1
    assert "Port ZZZZZ not found" in result.output


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_top(mock_runtime, mock_sl):
    service = mock_runtime.return_value.congestion_service.return_value
    service.top_congested_ports.return_value = [_anchored_snapshot()]
    result = runner.invoke(app, ["top", "-n", "3"])

    assert result.exit_code == 0
    service.top_congested_ports.assert_called_once_with(limit=3)
    assert "SGSIN" in result.output


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_top_nothing_congested(mock_runtime, mock_sl):
    mock_runtime.return_value.congestion_service.return_value.top_congested_ports.return_value = []
    result = runner.invoke(app, ["top"])
    assert result.exit_code == 0
    assert "No congested ports" in result.output


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_pre_arrival(mock_runtime, mock_sl):
    fix = PositionFix("9775891", "ORE BRASIL", Coordinate(1.2644, 102.8217), 12.0, NOW, heading_deg=90.0)
    report = predict_pre_arrivals(SINGAPORE, [fix], window_hours=24.0, now=NOW)
    service = mock_runtime.return_value.pre_arrival_service.return_value
    service.get_report.return_value = report

    result = runner.invoke(app, ["pre-arrival", "SGSIN", "--window", "24"])

    assert result.exit_code == 0
    service.get_report.assert_called_once_with("SGSIN", 24.0)
    assert "1 inbound within 24h" in result.output
    assert "ORE BRASIL" in result.output


@patch("app.cli._runtime")
def test_pre_arrival_rejects_non_positive_window(mock_runtime):
    result = runner.invoke(app, ["pre-arrival", "SGSIN", "--window", "0"])
    assert result.exit_code == 1
    mock_runtime.assert_not_called()


# ---------------------------------------------------------------------------
# evaluate / alerts / ack
# ---------------------------------------------------------------------------


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_evaluate(mock_runtime, mock_sl):
    engine = mock_runtime.return_value.alert_engine.return_value
    engine.evaluate_port.return_value = EvaluationResult(port_code="SGSIN", fired=[_alert()], suppressed=2)
    result = runner.invoke(app, ["evaluate", "sgsin"])

    assert result.exit_code == 0
    assert "1 alert(s) fired, 2 suppressed" in result.output
    assert "HIGH_CONGESTION" in result.output


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_evaluate_unavailable_port(mock_runtime, mock_sl):
    engine = mock_runtime.return_value.alert_engine.return_value
    engine.evaluate_port.return_value = EvaluationResult(port_code="XXNOC", status="no_coordinates")
    result = runner.invoke(app, ["evaluate", "XXNOC"])
    assert result.exit_code == 1
    assert "no coordinates" in result.output


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_alerts_lists_history(mock_runtime, mock_sl):
    engine = mock_runtime.return_value.alert_engine.return_value
    engine.list_alerts.return_value = [_alert()]
    result = runner.invoke(app, ["alerts", "SGSIN", "--all"])

    assert result.exit_code == 0
    engine.list_alerts.assert_called_once_with("SGSIN", include_acknowledged=True)
    assert "Alerts for SGSIN" in result.output


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_alerts_empty(mock_runtime, mock_sl):
    mock_runtime.return_value.alert_engine.return_value.list_alerts.return_value = []
    result = runner.invoke(app, ["alerts", "SGSIN"])
    assert result.exit_code == 0
    assert "No alerts" in result.output


@patch("app.database.SessionLocal")
@patch("app.cli._runtime")
def test_ack_unknown_alert(mock_runtime, mock_sl):
    mock_runtime.return_value.alert_engine.return_value.acknowledge.return_value = False
    result = runner.invoke(app, ["ack", "SGSIN", "missing-id"])
    assert result.exit_code == 1
    assert "not found" in result.output


# ---------------------------------------------------------------------------
# watch / sweep
# ---------------------------------------------------------------------------


def test_watch_and_remove(db, add_port):
    add_port()
    with patch("app.database.SessionLocal", return_value=db):
        added = runner.invoke(app, ["watch", "sgsin", "-s", "ops"])
        removed = runner.invoke(app, ["watch", "SGSIN", "-s", "ops", "--remove"])

    assert added.exit_code == 0
    assert removed.exit_code == 0
    watch = db.query(PortWatch).one()
    assert watch.port_code == "SGSIN"
    assert watch.is_active is False


def test_watch_unknown_port(db):
    with patch("app.database.SessionLocal", return_value=db):
        result = runner.invoke(app, ["watch", "ZZZZZ"])
    assert result.exit_code == 1


@patch("app.modules.scheduler.build_sweeper")
@patch("app.cli._runtime")
def test_sweep_once(mock_runtime, mock_build):
    report = SweepReport(started_at=NOW, results={"SGSIN": EvaluationResult("SGSIN", fired=[_alert()])})
    mock_build.return_value.run_once.return_value = report
    result = runner.invoke(app, ["sweep", "--once"])

    assert result.exit_code == 0
    assert "1 alert(s) fired, 0 error(s)" in result.output
    mock_runtime.return_value.close.assert_called_once()


@patch("app.modules.scheduler.build_sweeper")
@patch("app.cli._runtime")
def test_sweep_once_with_errors_exits_nonzero(mock_runtime, mock_build):
    sweeper = MagicMock()
    sweeper.run_once.return_value = SweepReport(started_at=NOW, errors={"NLRTM": "database timeout"})
    mock_build.return_value = sweeper
    result = runner.invoke(app, ["sweep", "--once", "--interval", "5"])

    assert result.exit_code == 1
    assert sweeper.interval_seconds == 300
    assert "NLRTM: database timeout" in result.output
