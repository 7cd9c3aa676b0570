"""
API Middleware Package

- PrometheusMiddleware: HTTP request metrics labelled by route template
"""

from .prometheus_middleware import PrometheusMiddleware

__all__ = ['PrometheusMiddleware']
