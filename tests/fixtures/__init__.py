"""
Shared test fixtures for the test suite.

This module provides common test doubles and payloads used across multiple test files.
"""

from tests.fixtures.whatsapp import *

__all__ = [
    'FakeTransport',
    'TransportRecorder',
    'ManualScheduler',
    'text_message',
    'disconnect_payload',
    'unreachable_transport',
]
