"""
Shared pytest fixtures for unit tests
=====================================
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from lodgebot.core.event_bus import EventBus
from lodgebot.core.logger import StructuredLogger
from lodgebot.infrastructure.config.settings import WhatsAppSettings
from lodgebot.infrastructure.whatsapp.connection_manager import ConnectionManager
from lodgebot.infrastructure.whatsapp.credential_store import CredentialStore
from lodgebot.infrastructure.whatsapp.qr_renderer import QrRenderer
from tests.fixtures.whatsapp import ManualScheduler, TransportRecorder


@pytest.fixture
def logger():
    """Mock StructuredLogger for capturing log calls"""
    mock_logger = MagicMock(spec=StructuredLogger)
    mock_logger.info = MagicMock()
    mock_logger.warning = MagicMock()
    mock_logger.error = MagicMock()
    mock_logger.debug = MagicMock()
    mock_logger.critical = MagicMock()
    return mock_logger


@pytest.fixture
def whatsapp_settings(tmp_path):
    """WhatsAppSettings pointing at a throwaway directory (Pydantic model)"""
    return WhatsAppSettings(
        session_dir=str(tmp_path / "data" / "session"),
        qr_png_path=str(tmp_path / "data" / "qr_code.png"),
        qr_terminal_enabled=False,
    )


@pytest.fixture
def qr_renderer():
    """QrRenderer double, no image encoding in unit tests"""
    renderer = MagicMock(spec=QrRenderer)
    renderer.png_path = "data/qr_code.png"
    renderer.render_async = AsyncMock(return_value=True)
    return renderer


@pytest.fixture
def event_bus():
    """Mock EventBus"""
    bus = MagicMock(spec=EventBus)
    bus.publish = AsyncMock()
    return bus


@pytest.fixture
def transport_factory():
    return TransportRecorder()


@pytest.fixture
def manual_scheduler():
    return ManualScheduler()


@pytest.fixture
def manager(whatsapp_settings, transport_factory, manual_scheduler, qr_renderer, event_bus, logger):
    return ConnectionManager(
        transport_factory=transport_factory,
        settings=whatsapp_settings,
        credential_store=CredentialStore(whatsapp_settings.session_dir),
        qr_renderer=qr_renderer,
        scheduler=manual_scheduler,
        event_bus=event_bus,
        logger=logger,
    )


@pytest.fixture
def on_message():
    return AsyncMock()
