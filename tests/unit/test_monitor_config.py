import pytest
from fakes import make_config

from waha_monitor.core.config import MonitorConfig
from waha_monitor.core.exceptions import ConfigurationError


def test_defaults_when_environment_is_empty():
    cfg = MonitorConfig(_env_file=None)
    assert cfg.waha_internal_url is None
    assert cfg.waha_api_key is None
    assert cfg.waha_timeout_ms == 15000
    assert cfg.request_timeout_seconds == 15.0
    assert cfg.sync_max_attempts == 5
    assert cfg.sync_retry_delay_seconds == 4.0
    assert cfg.is_gateway_configured is False


def test_loads_gateway_settings_from_environment(monkeypatch):
    monkeypatch.setenv("WAHA_INTERNAL_URL", "http://waha:3000/")
    monkeypatch.setenv("WAHA_API_KEY", "  k3y  ")
    monkeypatch.setenv("WAHA_TIMEOUT_MS", "2500")
    cfg = MonitorConfig(_env_file=None)
    assert cfg.require_gateway() == ("http://waha:3000", "k3y")
    assert cfg.request_timeout_seconds == 2.5


def test_blank_values_count_as_missing():
    cfg = MonitorConfig(_env_file=None, waha_internal_url="   ", waha_api_key="")
    assert cfg.waha_internal_url is None
    assert cfg.waha_api_key is None
    with pytest.raises(ConfigurationError) as exc:
        cfg.require_gateway()
    assert exc.value.status == 500
    assert ".env" in str(exc.value)


def test_production_hint_mentions_hosting_environment():
    cfg = MonitorConfig(_env_file=None, environment="production")
    with pytest.raises(ConfigurationError) as exc:
        cfg.require_gateway()
    assert "hosting environment" in str(exc.value)


def test_describe_reports_status_without_secret():
    cfg = make_config()
    info = cfg.describe()
    assert info == {
        "configured": True,
        "urlSet": True,
        "keySet": True,
        "keyLength": len("secret-key-123"),
    }
    assert "secret-key-123" not in str(info)


def test_describe_warns_for_cloud_workstations_url():
    cfg = make_config(waha_internal_url="https://3000-abc.cloudworkstations.dev")
    assert "warning" in cfg.describe()


def test_invalid_timeout_is_rejected():
    with pytest.raises(ValueError):
        MonitorConfig(_env_file=None, waha_timeout_ms=0)
