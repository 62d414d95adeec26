"""
Configuration management for the application.
"""

from .loader import ConfigLoader
from .models import ApplicationConfig, LoggingConfig

__all__ = [
    "ConfigLoader",
    "ApplicationConfig",
    "LoggingConfig",
]
