"""Middleware package exports."""

from sampledb.middleware.correlation_id import CorrelationIdMiddleware
from sampledb.middleware.logging import LoggingMiddleware
from sampledb.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "CorrelationIdMiddleware",
    "LoggingMiddleware",
    "SecurityHeadersMiddleware",
]
