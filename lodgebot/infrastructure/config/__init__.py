"""
Infrastructure Configuration - Unified Configuration System
==========================================================
AppSettings is the single source of truth; it is created once in the
composition root (lodgebot.__main__) and passed down explicitly.
"""

from .settings import AppSettings, WhatsAppSettings, LoggingSettings
from .config_loader import load_app_settings_from_json, get_settings_from_working_directory

__all__ = [
    'AppSettings',
    'WhatsAppSettings',
    'LoggingSettings',
    'load_app_settings_from_json',
    'get_settings_from_working_directory',
]
