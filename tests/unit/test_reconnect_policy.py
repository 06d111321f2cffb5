"""
Unit Tests for ReconnectPolicy
==============================

Test Coverage:
- Delay doubles from 3s and saturates at 30s
- Attempt numbers are 1-based
- Attempt ceiling bookkeeping
"""

import pytest

from lodgebot.domain.services.reconnect_policy import (
    DELAY_CAP_MS,
    INITIAL_DELAY_MS,
    MAX_RECONNECT_ATTEMPTS,
    ReconnectPolicy,
    compute_delay_ms,
)
from lodgebot.infrastructure.config.settings import WhatsAppSettings


class TestComputeDelay:
    """Backoff formula: min(initial * 2^(attempt-1), cap)"""

    @pytest.mark.parametrize("attempt,expected", [
        (1, 3000),
        (2, 6000),
        (3, 12000),
        (4, 24000),
        (5, 30000),
        (10, 30000),
    ])
    def test_default_schedule(self, attempt, expected):
        assert compute_delay_ms(attempt) == expected

    def test_huge_attempt_stays_capped(self):
        assert compute_delay_ms(10_000) == DELAY_CAP_MS

    def test_initial_above_cap_returns_cap(self):
        assert compute_delay_ms(1, initial_ms=50000, cap_ms=30000) == 30000

    @pytest.mark.parametrize("attempt", [0, -1])
    def test_attempt_must_be_positive(self, attempt):
        with pytest.raises(ValueError):
            compute_delay_ms(attempt)

    def test_delay_is_monotonic(self):
        delays = [compute_delay_ms(n) for n in range(1, 15)]
        assert delays == sorted(delays)


class TestReconnectPolicy:

    def test_defaults(self):
        policy = ReconnectPolicy()

        assert policy.initial_delay_ms == INITIAL_DELAY_MS == 3000
        assert policy.max_delay_ms == DELAY_CAP_MS == 30000
        assert policy.max_attempts == MAX_RECONNECT_ATTEMPTS == 10

    def test_can_retry_until_ceiling(self):
        policy = ReconnectPolicy(max_attempts=3)

        assert policy.can_retry(0)
        assert policy.can_retry(2)
        assert not policy.can_retry(3)

    def test_remaining_never_negative(self):
        policy = ReconnectPolicy(max_attempts=2)

        assert policy.remaining(0) == 2
        assert policy.remaining(2) == 0
        assert policy.remaining(5) == 0

    def test_zero_attempts_never_retries(self):
        assert not ReconnectPolicy(max_attempts=0).can_retry(0)

    def test_from_settings(self):
        settings = WhatsAppSettings(reconnect_initial_delay_ms=500, reconnect_max_delay_ms=4000,
                                    max_reconnect_attempts=6)

        policy = ReconnectPolicy.from_settings(settings)

        assert policy.delay_ms(1) == 500
        assert policy.delay_ms(4) == 4000
        assert policy.max_attempts == 6
