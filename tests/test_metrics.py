"""Tests for scoped/global registries."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from prometheus_client.parser import text_string_to_metric_families

from intercom_exporter.metrics import (
    GlobalMetrics,
    MetricsConfig,
    discard,
    new_scoped_registry,
    record_failure,
    record_success,
    render,
)
from intercom_exporter.models import ProbeResult

TARGET = "http://10.0.0.5"


def samples(output: bytes):
    """{(name, frozenset(labels)): value} of every sample in an exposition document."""
    out = {}
    for family in text_string_to_metric_families(output.decode("utf-8")):
        for s in family.samples:
            out[(s.name, frozenset(s.labels.items()))] = s.value
    return out


def names(output: bytes):
    return {name for name, _ in samples(output)}


@pytest.fixture
def config():
    return MetricsConfig()


def test_fresh_registry_renders_without_samples(config):
    scoped = new_scoped_registry(config)
    output = render(scoped.registry)

    assert samples(output) == {}
    assert b"# TYPE probe_success gauge" in output
    assert b"# TYPE sys_intercom_sip_status gauge" in output


def test_record_success(config):
    global_metrics = GlobalMetrics(config)
    scoped = new_scoped_registry(config)
    record_success(scoped, TARGET, ProbeResult(1, 184547), global_metrics)

    labels = frozenset({("url", TARGET)})
    assert samples(render(scoped.registry)) == {
        ("sys_intercom_sip_status", labels): 1.0,
        ("sys_intercom_uptime_seconds", labels): 184547.0,
        ("probe_success", labels): 1.0,
    }
    # success is not mirrored globally
    assert samples(global_metrics.render()) == {
        ("sys_intercom_sip_status", labels): 1.0,
        ("sys_intercom_uptime_seconds", labels): 184547.0,
    }


def test_record_failure_only_sets_success(config):
    global_metrics = GlobalMetrics(config)
    record_success(new_scoped_registry(config), TARGET, ProbeResult(1, 100), global_metrics)

    scoped = new_scoped_registry(config)
    record_failure(scoped, TARGET)

    assert samples(render(scoped.registry)) == {("probe_success", frozenset({("url", TARGET)})): 0.0}
    # last known values of the target survive
    assert samples(global_metrics.render())[("sys_intercom_uptime_seconds", frozenset({("url", TARGET)}))] == 100.0


def test_global_overwrites_per_target(config):
    global_metrics = GlobalMetrics(config)
    record_success(new_scoped_registry(config), TARGET, ProbeResult(1, 100), global_metrics)
    record_success(new_scoped_registry(config), TARGET, ProbeResult(0, 160), global_metrics)
    record_success(new_scoped_registry(config), "http://10.0.0.6", ProbeResult(1, 7), global_metrics)

    result = samples(global_metrics.render())
    assert len(result) == 4
    assert result[("sys_intercom_sip_status", frozenset({("url", TARGET)}))] == 0.0
    assert result[("sys_intercom_uptime_seconds", frozenset({("url", TARGET)}))] == 160.0


def test_scoped_registries_are_isolated(config):
    first = new_scoped_registry(config)
    second = new_scoped_registry(config)
    record_success(first, TARGET, ProbeResult(1, 1))
    record_failure(second, "http://10.0.0.6")

    assert {dict(labels)["url"] for _, labels in samples(render(first.registry))} == {TARGET}
    assert {dict(labels)["url"] for _, labels in samples(render(second.registry))} == {"http://10.0.0.6"}


def test_concurrent_probes_keep_labels_apart(config):
    global_metrics = GlobalMetrics(config)

    def probe(i):
        scoped = new_scoped_registry(config)
        target = f"http://10.0.1.{i}"
        record_success(scoped, target, ProbeResult(i % 2, i), global_metrics)
        try:
            return target, samples(render(scoped.registry))
        finally:
            discard(scoped)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(probe, range(32)))

    for target, result in results:
        assert {dict(labels)["url"] for _, labels in result} == {target}

    global_result = samples(global_metrics.render())
    for i in range(32):
        labels = frozenset({("url", f"http://10.0.1.{i}")})
        assert global_result[("sys_intercom_uptime_seconds", labels)] == float(i)


def test_discard_empties_registry(config):
    scoped = new_scoped_registry(config)
    record_success(scoped, TARGET, ProbeResult(1, 5))
    discard(scoped)

    assert render(scoped.registry) == b""
    with pytest.raises(RuntimeError):
        record_failure(scoped, TARGET)
    discard(scoped)


def test_prefix_and_app_label():
    config = MetricsConfig(prefix="door", app_name="intercoms")
    scoped = new_scoped_registry(config)
    record_success(scoped, TARGET, ProbeResult(1, 5))

    labels = frozenset({("url", TARGET), ("app", "intercoms")})
    assert samples(render(scoped.registry)) == {
        ("door_sip_status", labels): 1.0,
        ("door_uptime_seconds", labels): 5.0,
        ("probe_success", labels): 1.0,
    }


def test_empty_prefix():
    scoped = new_scoped_registry(MetricsConfig(prefix=""))
    record_success(scoped, TARGET, ProbeResult(1, 5))

    assert names(render(scoped.registry)) == {"sip_status", "uptime_seconds", "probe_success"}
