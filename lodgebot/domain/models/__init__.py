"""
Domain Models
=============
"""

from .connection import (
    ManagerStatus,
    DisconnectCode,
    DisconnectReason,
    SessionInvalidPredicate,
    is_session_invalid,
)
from .inbound_message import InboundMessage, SkipReason, extract_text

__all__ = [
    'ManagerStatus',
    'DisconnectCode',
    'DisconnectReason',
    'SessionInvalidPredicate',
    'is_session_invalid',
    'InboundMessage',
    'SkipReason',
    'extract_text',
]
