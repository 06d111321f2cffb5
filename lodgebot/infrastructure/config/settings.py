"""
Unified Configuration Settings - Single Source of Truth
=======================================================
All application configuration using Pydantic Settings.
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator
from typing import List
from enum import Enum


class LogLevel(str, Enum):
    """Logging levels"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# === WHATSAPP CONNECTION CONFIGURATION ===

class WhatsAppSettings(BaseSettings):
    """WhatsApp session, pairing and reconnection configuration"""
    session_dir: str = Field(default="data/session", description="Directory holding persisted auth-state files")
    qr_png_path: str = Field(default="data/qr_code.png", description="PNG written on every pairing challenge")
    qr_terminal_enabled: bool = Field(default=True, description="Print the pairing QR as ASCII to stdout")

    # Reconnection policy
    reconnect_initial_delay_ms: int = Field(default=3000, description="Delay before the first reconnect attempt")
    reconnect_max_delay_ms: int = Field(default=30000, description="Upper bound for the backoff delay")
    max_reconnect_attempts: int = Field(default=10, description="Consecutive attempts before giving up")

    # Transport options handed to the client library
    browser: List[str] = Field(default_factory=lambda: ["ValidationBot", "Chrome", "1.0.0"],
                               description="Browser identity announced when pairing")
    keep_alive_interval_ms: int = Field(default=25000)
    connect_timeout_ms: int = Field(default=60000)
    mark_online_on_connect: bool = Field(default=False)
    sync_full_history: bool = Field(default=False)

    # Composition root wiring (module:attribute)
    transport_factory: str = Field(default="", description="Import path of the transport factory")
    message_handler: str = Field(default="", description="Import path of the async message callback")

    @field_validator('reconnect_initial_delay_ms', 'reconnect_max_delay_ms')
    @classmethod
    def validate_positive_delay(cls, v):
        if v <= 0:
            raise ValueError("Reconnect delays must be positive")
        return v

    @field_validator('max_reconnect_attempts')
    @classmethod
    def validate_attempts(cls, v):
        if v < 0:
            raise ValueError("max_reconnect_attempts must be >= 0")
        return v

    @field_validator('browser')
    @classmethod
    def validate_browser(cls, v):
        if len(v) != 3:
            raise ValueError(f"browser must be [name, client, version], got {v}")
        return v

    @model_validator(mode='after')
    def validate_delay_order(self):
        if self.reconnect_initial_delay_ms > self.reconnect_max_delay_ms:
            raise ValueError("reconnect_initial_delay_ms cannot exceed reconnect_max_delay_ms")
        return self

    class Config:
        env_prefix = "WHATSAPP_"


# === LOGGING CONFIGURATION ===

class LoggingSettings(BaseSettings):
    """Logging configuration"""
    level: LogLevel = Field(default=LogLevel.INFO)
    file_enabled: bool = Field(default=True)
    console_enabled: bool = Field(default=True)
    structured_logging: bool = Field(default=True)
    log_dir: str = Field(default="logs")
    max_file_size_mb: int = Field(default=20)
    backup_count: int = Field(default=14)

    class Config:
        env_prefix = "LOG_"


# === MAIN APPLICATION SETTINGS ===

class AppSettings(BaseSettings):
    """Main application settings - Single Source of Truth"""

    app_name: str = Field(default="lodge-bot")
    version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    whatsapp: WhatsAppSettings = Field(default_factory=WhatsAppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_nested_delimiter = "__"  # Allows WHATSAPP__SESSION_DIR=/var/lib/bot
        case_sensitive = False
        extra = "ignore"
