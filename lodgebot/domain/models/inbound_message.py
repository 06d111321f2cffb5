"""
Inbound Message Envelope
========================
Read-only view over a provider message envelope:

    {"key": {"remoteJid": "...", "fromMe": false, "id": "..."},
     "message": {"conversation": "hola"},
     "pushName": "..."}

Decides whether the message should reach the message callback and pulls
out sender, text and content type.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

# Protocol-level payloads that carry no user content (revokes, receipts, edits, reactions)
CONTROL_MESSAGE_KEYS = frozenset({
    "protocolMessage",
    "reactionMessage",
    "encReactionMessage",
    "editedMessage",
    "receiptMessage",
    "pollUpdateMessage",
    "keepInChatMessage",
})

# Companion keys that ride along with real content but are not content themselves
METADATA_KEYS = frozenset({
    "messageContextInfo",
    "senderKeyDistributionMessage",
})

EPHEMERAL_WRAPPER = "ephemeralMessage"

# Text sources in priority order: (content key, field)
TEXT_SOURCES: Tuple[Tuple[str, Optional[str]], ...] = (
    ("conversation", None),
    ("extendedTextMessage", "text"),
    ("imageMessage", "caption"),
    ("videoMessage", "caption"),
    ("documentMessage", "caption"),
)


class SkipReason:
    NOT_A_DICT = "not_a_dict"
    MISSING_SENDER = "missing_sender"
    FROM_ME = "from_me"
    NO_PAYLOAD = "no_payload"
    EPHEMERAL_ONLY = "ephemeral_only"
    CONTROL_MESSAGE = "control_message"


@dataclass(frozen=True)
class InboundMessage:
    sender: str
    text: str
    message_type: str
    skip_reason: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def should_process(self) -> bool:
        return self.skip_reason is None

    @property
    def content(self) -> Dict[str, Any]:
        """The provider content dict (``raw["message"]``), empty when absent"""
        content = self.raw.get("message") if isinstance(self.raw, dict) else None
        return content if isinstance(content, dict) else {}

    @classmethod
    def from_raw(cls, raw: Any) -> 'InboundMessage':
        if not isinstance(raw, dict):
            return cls(sender="", text="", message_type="", skip_reason=SkipReason.NOT_A_DICT)

        key = raw.get("key") if isinstance(raw.get("key"), dict) else {}
        sender = str(key.get("remoteJid") or "")
        content = raw.get("message")

        unwrapped, skip_reason = _unwrap_content(content)
        message_type = _first_content_key(unwrapped)

        if skip_reason is None:
            if key.get("fromMe"):
                skip_reason = SkipReason.FROM_ME
            elif not sender:
                skip_reason = SkipReason.MISSING_SENDER
            elif CONTROL_MESSAGE_KEYS.intersection(unwrapped):
                skip_reason = SkipReason.CONTROL_MESSAGE
        elif key.get("fromMe"):
            skip_reason = SkipReason.FROM_ME

        return cls(
            sender=sender,
            text=extract_text(unwrapped),
            message_type=message_type,
            skip_reason=skip_reason,
            raw=raw,
        )


def _unwrap_content(content: Any) -> Tuple[Dict[str, Any], Optional[str]]:
    """Return (content without ephemeral wrapper, skip reason or None)."""
    if not isinstance(content, dict) or not content:
        return {}, SkipReason.NO_PAYLOAD

    if EPHEMERAL_WRAPPER in content:
        wrapper = content.get(EPHEMERAL_WRAPPER)
        inner = wrapper.get("message") if isinstance(wrapper, dict) else None
        if not isinstance(inner, dict) or not (set(inner) - METADATA_KEYS):
            return {}, SkipReason.EPHEMERAL_ONLY
        content = inner

    if not (set(content) - METADATA_KEYS):
        return {}, SkipReason.EPHEMERAL_ONLY

    return content, None


def _first_content_key(content: Dict[str, Any]) -> str:
    for key in content:
        if key not in METADATA_KEYS:
            return key
    return ""


def extract_text(content: Dict[str, Any]) -> str:
    """
    First populated text among plain text, extended text and media captions.

    Surrounding whitespace is stripped; returns "" when nothing is populated.
    """
    if not isinstance(content, dict):
        return ""

    for content_key, text_field in TEXT_SOURCES:
        value = content.get(content_key)
        if text_field is not None:
            value = value.get(text_field) if isinstance(value, dict) else None
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""
