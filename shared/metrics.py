"""
Shared metrics configuration for the NuGet README Access service.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, Info
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for the service.

    Each collector owns its registry so several service instances (tests,
    embedded use) never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_readme_metrics()

    def _setup_readme_metrics(self):
        """Set up tool, cache and upstream metrics."""
        self._metrics["tool_calls_total"] = Counter(
            "tool_calls_total",
            "Total tool calls",
            ["tool", "outcome"],
            registry=self.registry
        )

        self._metrics["tool_call_duration_seconds"] = Histogram(
            "tool_call_duration_seconds",
            "Tool call duration in seconds",
            ["tool"],
            registry=self.registry
        )

        self._metrics["cache_operations_total"] = Counter(
            "cache_operations_total",
            "Cache operations by result",
            ["result"],
            registry=self.registry
        )

        self._metrics["readme_resolutions_total"] = Counter(
            "readme_resolutions_total",
            "README resolutions by source",
            ["source"],
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_tool_call(self, tool: str, outcome: str, duration: float):
        """Record a completed tool call."""
        self._metrics["tool_calls_total"].labels(tool=tool, outcome=outcome).inc()
        self._metrics["tool_call_duration_seconds"].labels(tool=tool).observe(duration)

    def record_cache_operation(self, result: str):
        """Record a cache hit, miss, eviction or expiration."""
        self._metrics["cache_operations_total"].labels(result=result).inc()

    def record_resolution(self, source: str):
        """Record which source satisfied a README resolution."""
        self._metrics["readme_resolutions_total"].labels(source=source).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
