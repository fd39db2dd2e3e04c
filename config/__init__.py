"""
Configuration module for PaneSync.
"""
from .constants import *
from .logging_config import configure_logging, get_logger, logger
from .settings import Settings, get_settings, settings

__all__ = [
    # Logging
    'configure_logging',
    'get_logger',
    'logger',
    # Settings
    'Settings',
    'get_settings',
    'settings',
    # Constants (all exported via *)
]
