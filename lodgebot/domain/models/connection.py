"""
Connection Models
=================
Manager status, disconnect codes and the disconnect-reason classifier.

Status transitions as driven by ConnectionManager:

    [IDLE] ──start──► [CONNECTING] ──qr──► [AWAITING_QR]
                          │   ▲                 │
                        open  │ timer          open
                          ▼   │                 ▼
                       [OPEN] ──close──► [RECONNECTING] ──ceiling──► [EXHAUSTED]

    any state ──stop()──► [STOPPED]
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, Optional


class ManagerStatus(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_QR = "awaiting_qr"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    EXHAUSTED = "exhausted"          # attempt ceiling hit, needs external restart
    FAILED = "failed"                # session storage unusable during a reconnect
    STOPPED = "stopped"              # stop() called


class DisconnectCode(IntEnum):
    """Close status codes reported by WhatsApp web clients"""
    CONNECTION_LOST = 408
    CONNECTION_CLOSED = 428
    CONNECTION_REPLACED = 440
    LOGGED_OUT = 401
    FORBIDDEN = 403
    MULTIDEVICE_MISMATCH = 411
    BAD_SESSION = 500
    UNAVAILABLE_SERVICE = 503
    RESTART_REQUIRED = 515


# Codes that mean the stored credentials can never be used again
INVALID_SESSION_CODES = frozenset({DisconnectCode.LOGGED_OUT, DisconnectCode.BAD_SESSION})
INVALID_SESSION_REASON = "invalid_session"


@dataclass(frozen=True)
class DisconnectReason:
    """Normalised view over a provider ``lastDisconnect`` payload"""
    status_code: Optional[int] = None
    reason: str = ""
    message: str = ""

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> 'DisconnectReason':
        """
        Extract code and text from ``{"error": {"output": {"statusCode", "payload": {"reason"}}, "message"}, "statusCode"}``.

        Missing or malformed parts become None / empty strings; this never raises.
        """
        if not isinstance(payload, dict):
            return cls()

        error = payload.get("error")
        output = {}
        message = ""
        if isinstance(error, dict):
            output = error.get("output") or {}
            message = str(error.get("message") or "")
        elif error is not None:
            message = str(error)

        status_code = _as_int(output.get("statusCode") if isinstance(output, dict) else None)
        if status_code is None:
            status_code = _as_int(payload.get("statusCode"))

        reason = ""
        if isinstance(output, dict):
            inner = output.get("payload")
            if isinstance(inner, dict):
                reason = str(inner.get("reason") or inner.get("message") or "")

        return cls(status_code=status_code, reason=reason, message=message)

    @property
    def code_name(self) -> str:
        try:
            return DisconnectCode(self.status_code).name.lower()
        except ValueError:
            return "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status_code": self.status_code,
            "code_name": self.code_name,
            "reason": self.reason,
            "message": self.message,
        }


SessionInvalidPredicate = Callable[[DisconnectReason], bool]


def is_session_invalid(reason: DisconnectReason) -> bool:
    """
    Default heuristic: do the stored credentials need to be discarded?

    True for logged-out / bad-session codes, the explicit ``invalid_session``
    reason, or free text mentioning "invalid" or "401". Heuristic by nature;
    ConnectionManager accepts a replacement predicate.
    """
    if reason.status_code in INVALID_SESSION_CODES:
        return True
    if reason.reason == INVALID_SESSION_REASON:
        return True

    text = f"{reason.reason} {reason.message}".lower()
    return "invalid" in text or "401" in text


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
