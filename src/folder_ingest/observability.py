"""
Observability hooks for ingestion jobs.

Jobs, files and records emit events and metrics through an
ObservabilityManager; hooks forward them to logging, Prometheus or StatsD.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Metric kinds understood by the hooks."""
    COUNTER = "counter"
    GAUGE = "gauge"
    TIMER = "timer"


class EventType(Enum):
    """Ingestion lifecycle events."""
    JOB_START = "job_start"
    JOB_COMPLETE = "job_complete"
    JOB_FAILED = "job_failed"
    FILE_START = "file_start"
    FILE_COMPLETE = "file_complete"
    FILE_ERROR = "file_error"
    FILE_REJECTED = "file_rejected"


WARNING_EVENTS = (EventType.JOB_FAILED, EventType.FILE_ERROR, EventType.FILE_REJECTED)


@dataclass
class MetricEvent:
    """One metric sample with optional tags."""
    metric_type: MetricType
    name: str
    value: float
    timestamp: float = field(default_factory=time.time)
    tags: Dict[str, str] = field(default_factory=dict)

    def __str__(self) -> str:
        tags_str = ",".join(f"{k}={v}" for k, v in self.tags.items())
        return f"{self.name}:{self.value}|{self.metric_type.value}|{tags_str}"


@dataclass
class Event:
    """A job or file lifecycle event."""
    event_type: EventType
    timestamp: float = field(default_factory=time.time)
    job_id: Optional[str] = None
    file_path: Optional[Path] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [self.event_type.value]
        if self.job_id:
            parts.append(f"job={self.job_id}")
        if self.file_path:
            parts.append(f"file={self.file_path.name}")
        if self.details:
            parts.append(",".join(f"{k}={v}" for k, v in self.details.items()))
        return " ".join(parts)


class ObservabilityHook:
    """Receives metrics, events and errors. Subclasses override what they need."""

    def on_metric(self, metric: MetricEvent) -> None:
        pass

    def on_event(self, event: Event) -> None:
        pass

    def on_error(self, error: Exception, context: Dict[str, Any]) -> None:
        pass


class LoggingHook(ObservabilityHook):
    """Writes metrics at DEBUG and events at INFO, or WARNING for failures."""

    def __init__(self, log_metrics: bool = True, log_events: bool = True):
        self.log_metrics = log_metrics
        self.log_events = log_events

    def on_metric(self, metric: MetricEvent) -> None:
        if self.log_metrics:
            logger.debug(f"METRIC: {metric}")

    def on_event(self, event: Event) -> None:
        if not self.log_events:
            return
        level = logging.WARNING if event.event_type in WARNING_EVENTS else logging.INFO
        logger.log(level, f"EVENT: {event}")

    def on_error(self, error: Exception, context: Dict[str, Any]) -> None:
        logger.error(f"ERROR: {error} | Context: {context}")


class PrometheusHook(ObservabilityHook):
    """Exports counters, gauges and timers through prometheus_client.

    Timers become histograms. Pass ``port`` to serve the registry over HTTP.
    """

    def __init__(self, registry=None, port: Optional[int] = None):
        try:
            import prometheus_client
        except ImportError:
            raise ImportError("PrometheusHook needs the prometheus-client package")
        self.registry = registry if registry is not None else prometheus_client.REGISTRY
        self._factories = {
            MetricType.COUNTER: prometheus_client.Counter,
            MetricType.GAUGE: prometheus_client.Gauge,
            MetricType.TIMER: prometheus_client.Histogram,
        }
        self._collectors: Dict[Tuple[str, MetricType], Any] = {}
        self._lock = threading.Lock()
        if port:
            prometheus_client.start_http_server(port, registry=self.registry)
            logger.info(f"Prometheus metrics exposed on port {port}")

    def _collector(self, metric: MetricEvent):
        key = (metric.name, metric.metric_type)
        with self._lock:
            collector = self._collectors.get(key)
            if collector is None:
                factory = self._factories[metric.metric_type]
                collector = factory(
                    metric.name,
                    f"Folder ingest {metric.name}",
                    sorted(metric.tags),
                    registry=self.registry,
                )
                self._collectors[key] = collector
        return collector

    def on_metric(self, metric: MetricEvent) -> None:
        collector = self._collector(metric)
        if metric.tags:
            collector = collector.labels(**metric.tags)

        if metric.metric_type == MetricType.COUNTER:
            collector.inc(metric.value)
        elif metric.metric_type == MetricType.GAUGE:
            collector.set(metric.value)
        else:
            collector.observe(metric.value)


class StatsDHook(ObservabilityHook):
    """Forwards metrics to a StatsD daemon. Tags are folded into the dotted name."""

    def __init__(self, host: str = "localhost", port: int = 8125, prefix: str = "folder_ingest"):
        try:
            import statsd
        except ImportError:
            raise ImportError("StatsDHook needs the statsd package")
        self.client = statsd.StatsClient(host, port, prefix=prefix)

    @staticmethod
    def _stat_name(metric: MetricEvent) -> str:
        segments = [metric.name]
        for key, value in metric.tags.items():
            segments.extend((key, str(value)))
        return ".".join(segments)

    def on_metric(self, metric: MetricEvent) -> None:
        stat = self._stat_name(metric)
        if metric.metric_type == MetricType.COUNTER:
            self.client.incr(stat, int(metric.value))
        elif metric.metric_type == MetricType.GAUGE:
            self.client.gauge(stat, metric.value)
        else:
            self.client.timing(stat, metric.value)


class ObservabilityManager:
    """Fans metrics, events and errors out to every registered hook.

    A hook that raises is logged and skipped; ingestion carries on.
    """

    def __init__(self, hooks: Optional[List[ObservabilityHook]] = None):
        self.hooks: List[ObservabilityHook] = list(hooks or [])

    def register_hook(self, hook: ObservabilityHook) -> None:
        self.hooks.append(hook)

    def _dispatch(self, method: str, *args) -> None:
        for hook in self.hooks:
            try:
                getattr(hook, method)(*args)
            except Exception as e:
                logger.error(f"Error in observability hook {type(hook).__name__}.{method}: {e}")

    def emit_metric(self, metric_type: MetricType, name: str, value: float,
                    tags: Optional[Dict[str, str]] = None) -> None:
        self._dispatch("on_metric", MetricEvent(metric_type, name, value, tags=dict(tags or {})))

    def emit_event(self, event_type: EventType, job_id: Optional[str] = None,
                   file_path: Optional[Path] = None,
                   details: Optional[Dict[str, Any]] = None) -> None:
        event = Event(event_type, job_id=job_id, file_path=file_path, details=dict(details or {}))
        self._dispatch("on_event", event)

    def emit_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        self._dispatch("on_error", error, dict(context or {}))

    def counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
        self.emit_metric(MetricType.COUNTER, name, value, tags)

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        self.emit_metric(MetricType.GAUGE, name, value, tags)

    def timing(self, name: str, seconds: float, tags: Optional[Dict[str, str]] = None) -> None:
        """Emit a duration given in seconds as a millisecond timer."""
        self.emit_metric(MetricType.TIMER, name, seconds * 1000, tags)


def build_hooks(kind: str, statsd_host: str = "localhost", statsd_port: int = 8125,
                prometheus_port: Optional[int] = None) -> List[ObservabilityHook]:
    """Hooks for a ``--metrics`` choice: none, log, prometheus or statsd."""
    if kind == "none":
        return []
    if kind == "log":
        return [LoggingHook()]
    if kind == "prometheus":
        return [LoggingHook(log_metrics=False), PrometheusHook(port=prometheus_port)]
    if kind == "statsd":
        return [LoggingHook(log_metrics=False), StatsDHook(statsd_host, statsd_port)]
    raise ValueError(f"Unknown metrics backend: {kind}")
