"""
Core application modules.
Contains configuration, logging, tracing, metrics and middleware.
"""
from .config import Settings, get_settings

__all__ = ["Settings", "get_settings"]
