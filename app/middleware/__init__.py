"""Middleware components for the content repurposer API."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
