"""
Reconnect Policy
================
Bounded exponential backoff for WhatsApp reconnection.

    attempt:  1     2     3      4      5+
    delay:    3s    6s    12s    24s    30s (capped)

The attempt ceiling turns a persistent failure into a terminal stop instead
of an endless retry loop against the provider.
"""

from dataclasses import dataclass

INITIAL_DELAY_MS = 3000
DELAY_CAP_MS = 30000
MAX_RECONNECT_ATTEMPTS = 10


def compute_delay_ms(attempt: int, initial_ms: int = INITIAL_DELAY_MS, cap_ms: int = DELAY_CAP_MS) -> int:
    """
    Delay before reconnect attempt number ``attempt`` (1-based).

    Raises:
        ValueError: If attempt < 1
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")
    # Past the cap the exponent only grows the int, skip it
    if initial_ms >= cap_ms or attempt > cap_ms.bit_length():
        return cap_ms
    return min(initial_ms * 2 ** (attempt - 1), cap_ms)


@dataclass
class ReconnectPolicy:
    initial_delay_ms: int = INITIAL_DELAY_MS
    max_delay_ms: int = DELAY_CAP_MS
    max_attempts: int = MAX_RECONNECT_ATTEMPTS

    def delay_ms(self, attempt: int) -> int:
        return compute_delay_ms(attempt, self.initial_delay_ms, self.max_delay_ms)

    def can_retry(self, attempts_made: int) -> bool:
        return attempts_made < self.max_attempts

    def remaining(self, attempts_made: int) -> int:
        return max(0, self.max_attempts - attempts_made)

    @classmethod
    def from_settings(cls, settings) -> 'ReconnectPolicy':
        return cls(
            initial_delay_ms=settings.reconnect_initial_delay_ms,
            max_delay_ms=settings.reconnect_max_delay_ms,
            max_attempts=settings.max_reconnect_attempts,
        )
