"""
Content Repurposer API package.

FastAPI routes, authentication, middleware and error handlers on top of the
``repurposer`` domain package.
"""

from .error_handlers import register_exception_handlers

__all__ = ["register_exception_handlers"]
