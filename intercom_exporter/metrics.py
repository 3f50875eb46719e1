"""Request-scoped and process-wide metric registries.

Every /probe request gets its own ``CollectorRegistry`` (the multi-target
exporter pattern), which is rendered once and then discarded. Successful
probes are also mirrored into a long-lived ``GlobalMetrics`` registry served on
/metrics, keyed by the ``url`` label so the last known values of a target are
overwritten, never accumulated.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from prometheus_client import CollectorRegistry, Gauge, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from .models import ProbeResult

CONTENT_TYPE = CONTENT_TYPE_LATEST
DEFAULT_PREFIX = "sys_intercom"
PROBE_SUCCESS_NAME = "probe_success"


@dataclass(frozen=True)
class MetricsConfig:
    prefix: str = DEFAULT_PREFIX
    app_name: Optional[str] = None

    def name(self, suffix: str) -> str:
        return f"{self.prefix}_{suffix}" if self.prefix else suffix

    @property
    def default_labels(self) -> Dict[str, str]:
        return {"app": self.app_name} if self.app_name else {}

    @property
    def labelnames(self) -> List[str]:
        return ["url"] + list(self.default_labels)


def _status_gauge(config: MetricsConfig, registry: CollectorRegistry) -> Gauge:
    return Gauge(
        config.name("sip_status"),
        "SIP status of the intercom. 0 = offline; 1 = online",
        config.labelnames,
        registry=registry,
    )


def _uptime_gauge(config: MetricsConfig, registry: CollectorRegistry) -> Gauge:
    return Gauge(
        config.name("uptime_seconds"),
        "Uptime of the intercom in seconds",
        config.labelnames,
        registry=registry,
    )


class GlobalMetrics:
    """Process-wide aggregate of the last successful probe per target.

    Create one at startup and hand it to the HTTP layer. Only status and
    uptime are kept; probe success is per request.
    """

    def __init__(self, config: Optional[MetricsConfig] = None):
        self.config = config or MetricsConfig()
        self.registry = CollectorRegistry()
        self.status = _status_gauge(self.config, self.registry)
        self.uptime = _uptime_gauge(self.config, self.registry)

    def update(self, target: str, result: ProbeResult) -> None:
        labels = dict(url=target, **self.config.default_labels)
        self.status.labels(**labels).set(result.status)
        self.uptime.labels(**labels).set(result.uptime_seconds)

    def render(self) -> bytes:
        return render(self.registry)


class ScopedMetrics:
    """The three probe gauges bound to a registry that lives for one request."""

    def __init__(self, config: MetricsConfig):
        self.config = config
        self.registry = CollectorRegistry()
        self.status = _status_gauge(config, self.registry)
        self.uptime = _uptime_gauge(config, self.registry)
        self.success = Gauge(
            PROBE_SUCCESS_NAME,
            "Displays whether or not the probe was a success",
            config.labelnames,
            registry=self.registry,
        )
        self.discarded = False

    def labels_for(self, target: str) -> Dict[str, str]:
        if self.discarded:
            raise RuntimeError("scoped registry was already discarded")
        return dict(url=target, **self.config.default_labels)

    @property
    def collectors(self):
        return [self.status, self.uptime, self.success]


def new_scoped_registry(config: MetricsConfig) -> ScopedMetrics:
    return ScopedMetrics(config)


def record_success(scoped: ScopedMetrics, target: str, result: ProbeResult,
                   global_metrics: Optional[GlobalMetrics] = None) -> None:
    labels = scoped.labels_for(target)
    scoped.status.labels(**labels).set(result.status)
    scoped.uptime.labels(**labels).set(result.uptime_seconds)
    scoped.success.labels(**labels).set(1)
    if global_metrics is not None:
        global_metrics.update(target, result)


def record_failure(scoped: ScopedMetrics, target: str) -> None:
    # status/uptime stay unset so stale values are not replaced by zeros
    scoped.success.labels(**scoped.labels_for(target)).set(0)


def render(registry: CollectorRegistry) -> bytes:
    return generate_latest(registry)


def discard(scoped: ScopedMetrics) -> None:
    if scoped.discarded:
        return
    for collector in scoped.collectors:
        scoped.registry.unregister(collector)
    scoped.discarded = True
