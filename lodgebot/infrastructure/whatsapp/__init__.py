"""
WhatsApp connection layer: session lifecycle, credential storage and QR output.
"""

from .connection_manager import ConnectionManager, MessageCallback
from .credential_store import CredentialStore
from .qr_renderer import QrRenderer

__all__ = [
    'ConnectionManager',
    'MessageCallback',
    'CredentialStore',
    'QrRenderer',
]
