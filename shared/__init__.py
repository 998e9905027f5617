"""
Shared utilities for the NuGet README Access service.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- error_classifier: Maps HTTP statuses and exceptions onto error kinds
- retry: Classified retry with exponential backoff

Any cross-cutting logic should live here to avoid import cycles with the
service package. Do not import from service_readme into shared/.
"""
