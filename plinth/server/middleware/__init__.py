"""
Middleware modules for the Plinth server.

This package contains custom middleware for request logging and timing.
"""

from .timing_middleware import SLOW_REQUEST_MS, TimingMiddleware

__all__ = ["SLOW_REQUEST_MS", "TimingMiddleware"]
