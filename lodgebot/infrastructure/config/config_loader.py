"""
Configuration Loader - Bridge Between JSON Config and AppSettings
================================================================
Loads an optional config.json and maps it onto AppSettings. Environment
variables still win for anything the JSON file leaves out.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .settings import AppSettings, LogLevel, WhatsAppSettings

DEFAULT_CONFIG_PATHS = (
    "config/config.json",
    "config.json",
)


def resolve_env_vars(data: Any) -> Any:
    """Replace ``"${NAME}"`` string values with the environment variable NAME."""
    if isinstance(data, dict):
        return {k: resolve_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [resolve_env_vars(i) for i in data]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        return os.getenv(data[2:-1], "")
    return data


def load_app_settings_from_json(config_path: str = "config/config.json") -> AppSettings:
    """
    Load AppSettings from a JSON configuration file.

    Args:
        config_path: Path to config.json

    Returns:
        Configured AppSettings instance

    Raises:
        FileNotFoundError: If config_path does not exist
        ValueError: If the file is not valid JSON or maps to invalid settings
    """
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {config_path}: {e}") from e

    resolved_data = resolve_env_vars(config_data)
    settings = AppSettings()

    if 'logging' in resolved_data:
        logging_config = resolved_data['logging']

        json_level = str(logging_config.get('level', 'INFO')).upper()
        if json_level in LogLevel.__members__:
            settings.logging.level = LogLevel[json_level]

        if 'file' in logging_config:
            settings.logging.log_dir = str(Path(logging_config['file']).parent)
        if 'log_dir' in logging_config:
            settings.logging.log_dir = logging_config['log_dir']
        if 'console' in logging_config:
            settings.logging.console_enabled = bool(logging_config['console'])

    if 'whatsapp' in resolved_data:
        settings.whatsapp = _merge_whatsapp(settings.whatsapp, resolved_data['whatsapp'])

    return settings


def _merge_whatsapp(current: WhatsAppSettings, overrides: Dict[str, Any]) -> WhatsAppSettings:
    # Nested "connection" block uses the same keys as the flat form
    flat = dict(overrides)
    flat.update(flat.pop('connection', {}) or {})

    merged = current.model_dump()
    for key, value in flat.items():
        if key in merged and value not in (None, ""):
            merged[key] = value

    try:
        return WhatsAppSettings(**merged)
    except ValidationError as e:
        raise ValueError(f"Invalid whatsapp configuration: {e}") from e


def get_settings_from_working_directory(config_path: Optional[str] = None) -> AppSettings:
    """
    Load settings from an explicit path or the first config.json found in the working directory.

    Falls back to environment-only AppSettings when no file exists.
    """
    if config_path:
        return load_app_settings_from_json(config_path)

    for candidate in DEFAULT_CONFIG_PATHS:
        if Path(candidate).exists():
            return load_app_settings_from_json(candidate)

    return AppSettings()
