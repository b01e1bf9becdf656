"""Tests for alert_rules.yaml loading."""
import yaml

from app.models.base import AlertTypeEnum, CongestionLevelEnum
from app.modules.alert_engine import AlertRules, load_alert_rules, write_default_rules


def test_missing_file_uses_defaults(tmp_path):
    rules = load_alert_rules(tmp_path / "absent.yaml")
    assert rules == AlertRules()
    assert rules.eta_threshold_hours == 6.0
    assert rules.congestion_levels == {CongestionLevelEnum.HIGH, CongestionLevelEnum.CRITICAL}


def test_valid_file(tmp_path):
    path = tmp_path / "alert_rules.yaml"
    path.write_text(
        "eta_threshold_hours: 12\n"
        "congestion_levels: [critical]\n"
        "disabled_types: [DANGEROUS_GOODS_INBOUND]\n"
    )
    rules = load_alert_rules(path)
    assert rules.eta_threshold_hours == 12
    assert rules.congestion_levels == {CongestionLevelEnum.CRITICAL}
    assert not rules.is_enabled(AlertTypeEnum.DANGEROUS_GOODS_INBOUND)
    assert rules.is_enabled(AlertTypeEnum.ETA_IMMINENT)


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "alert_rules.yaml"
    path.write_text("")
    assert load_alert_rules(path) == AlertRules()


def test_malformed_yaml_uses_defaults(tmp_path):
    path = tmp_path / "alert_rules.yaml"
    path.write_text("eta_threshold_hours: [6\n")
    assert load_alert_rules(path) == AlertRules()


def test_invalid_values_use_defaults(tmp_path):
    path = tmp_path / "alert_rules.yaml"
    path.write_text("eta_threshold_hours: -1\ncongestion_levels: [gridlock]\n")
    assert load_alert_rules(path) == AlertRules()


def test_write_default_rules_once(tmp_path):
    path = tmp_path / "config" / "alert_rules.yaml"
    assert write_default_rules(path) is True
    assert write_default_rules(path) is False

    raw = yaml.safe_load(path.read_text())
    assert raw["congestion_levels"] == ["critical", "high"]
    assert load_alert_rules(path) == AlertRules()
