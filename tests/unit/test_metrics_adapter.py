from fakes import make_config
from prometheus_client import REGISTRY

from waha_monitor.di.container import Container
from waha_monitor.observability.metrics_adapter import (
    NoopMetricsAdapter,
    PrometheusMetricsAdapter,
)


def test_noop_metrics_adapter_methods_do_nothing():
    m = NoopMetricsAdapter()
    m.observe_request("GET", "ok", 0.1)
    m.inc_probe("list_chats", "hit")
    m.inc_sync_attempt("Success")
    m.inc_avatar_lookup("found")


def _sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_prometheus_metrics_adapter_increments_counters():
    m = PrometheusMetricsAdapter()
    before = _sample("waha_probe_attempts_total", {"operation": "get_contact", "result": "miss"})

    m.inc_probe("get_contact", "miss")
    m.observe_request("POST", "http_error", 0.2)
    m.inc_sync_attempt("Failed")
    m.inc_avatar_lookup("missing")

    after = _sample("waha_probe_attempts_total", {"operation": "get_contact", "result": "miss"})
    assert after == before + 1
    assert _sample("waha_gateway_requests_total", {"method": "POST", "outcome": "http_error"}) >= 1


def test_container_picks_adapter_from_config():
    assert isinstance(
        Container(config=make_config()).provide_metrics(), NoopMetricsAdapter
    )
    assert isinstance(
        Container(config=make_config(enable_metrics=True)).provide_metrics(),
        PrometheusMetricsAdapter,
    )
