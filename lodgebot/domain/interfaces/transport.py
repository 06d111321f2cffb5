"""
WhatsApp Transport Interface - Port for the Messaging Client
============================================================
Any WhatsApp-protocol client library can drive the connection manager as
long as it is wrapped in this capability set.

Events emitted through ``on``:
- ``connection.update``: dict with optional ``connection`` ("connecting",
  "open", "close"), ``qr`` (pairing payload) and ``lastDisconnect``
  (provider close payload)
- ``creds.update``: dict with the rotated credential fields
- ``messages.upsert``: dict with ``messages`` (list of raw envelopes) and
  ``type`` ("notify", "append")
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Union

EVENT_CONNECTION_UPDATE = "connection.update"
EVENT_CREDS_UPDATE = "creds.update"
EVENT_MESSAGES_UPSERT = "messages.upsert"

TransportEventHandler = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class TransportOptions:
    """Client options passed through to the transport factory"""
    browser: List[str] = field(default_factory=lambda: ["ValidationBot", "Chrome", "1.0.0"])
    print_qr_in_terminal: bool = False
    keep_alive_interval_ms: int = 25000
    connect_timeout_ms: int = 60000
    mark_online_on_connect: bool = False
    sync_full_history: bool = False


class IWhatsAppTransport(ABC):
    """
    One socket to the WhatsApp network.

    A transport is single-use: after it closes, the manager builds a new one
    through the factory instead of reconnecting the old instance.
    """

    @abstractmethod
    def on(self, event: str, handler: TransportEventHandler) -> None:
        """Register a handler for a transport event"""
        pass

    @abstractmethod
    async def connect(self) -> None:
        """
        Initiate the connection.

        Returns once the handshake is underway; progress is reported through
        ``connection.update`` events, never through the return value.
        """
        pass

    @abstractmethod
    async def send_message(self, jid: str, content: Dict[str, Any]) -> Any:
        """Send a message payload (e.g. ``{"text": "..."}``) to a chat"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the socket without logging the session out"""
        pass

    @property
    @abstractmethod
    def credentials(self) -> Dict[str, Any]:
        """Current auth state, JSON-serialisable"""
        pass


TransportFactory = Callable[[Dict[str, Any], TransportOptions], IWhatsAppTransport]
