"""
Domain Services
===============
"""

from .reconnect_policy import (
    ReconnectPolicy,
    compute_delay_ms,
    INITIAL_DELAY_MS,
    DELAY_CAP_MS,
    MAX_RECONNECT_ATTEMPTS,
)

__all__ = [
    'ReconnectPolicy',
    'compute_delay_ms',
    'INITIAL_DELAY_MS',
    'DELAY_CAP_MS',
    'MAX_RECONNECT_ATTEMPTS',
]
