"""
Domain Interfaces - Ports for External Dependencies
==================================================
Abstract interfaces that define how the domain layer talks to infrastructure.
"""

from .transport import (
    IWhatsAppTransport,
    TransportFactory,
    TransportOptions,
    TransportEventHandler,
    EVENT_CONNECTION_UPDATE,
    EVENT_CREDS_UPDATE,
    EVENT_MESSAGES_UPSERT,
)

__all__ = [
    'IWhatsAppTransport',
    'TransportFactory',
    'TransportOptions',
    'TransportEventHandler',
    'EVENT_CONNECTION_UPDATE',
    'EVENT_CREDS_UPDATE',
    'EVENT_MESSAGES_UPSERT',
]
