"""
Core utilities for Plinth.

This package provides the logging configuration shared by the framework and
the server.
"""

from plinth.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
