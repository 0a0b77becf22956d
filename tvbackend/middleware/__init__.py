"""Middleware package initialization"""
from tvbackend.middleware.prometheus import PrometheusMiddleware, metrics_endpoint, record_auth_event

__all__ = ["PrometheusMiddleware", "metrics_endpoint", "record_auth_event"]
