"""
Logging infrastructure for the application.
"""

from .setup import setup_logging, get_logger, LoguruHandler

__all__ = [
    "setup_logging",
    "get_logger",
    "LoguruHandler",
]
