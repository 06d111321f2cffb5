"""
ConnectionManager - WhatsApp Session Lifecycle
==============================================
Keeps exactly one live WhatsApp session and re-establishes it after drops.

Responsibilities:
- Ensure the credential directory exists, load persisted auth state
- Build a transport through the injected factory and wire its events
- Render pairing QR challenges for the operator
- Persist rotated credentials as they arrive
- Filter inbound messages and hand them to the message callback
- Classify disconnects, wipe invalid sessions, reconnect with bounded backoff

Reconnection:
    on close:
        if reconnect already pending or attempts >= max: stop
        attempts += 1
        after min(initial * 2^(attempts-1), cap): start() again
    on open:
        attempts = 0

Only directory-creation failures escape ``start``. Everything that happens
once the session is running is logged and absorbed.
"""

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from lodgebot.core.event_bus import EventBus
from lodgebot.core.exceptions import SessionNotOpenError, SessionStorageError
from lodgebot.core.logger import StructuredLogger, get_logger
from lodgebot.core.scheduler import AsyncioScheduler, IScheduler, ScheduledHandle
from lodgebot.domain.interfaces.transport import (
    EVENT_CONNECTION_UPDATE,
    EVENT_CREDS_UPDATE,
    EVENT_MESSAGES_UPSERT,
    IWhatsAppTransport,
    TransportFactory,
    TransportOptions,
)
from lodgebot.domain.models.connection import (
    DisconnectReason,
    ManagerStatus,
    SessionInvalidPredicate,
    is_session_invalid,
)
from lodgebot.domain.models.inbound_message import InboundMessage
from lodgebot.domain.services.reconnect_policy import ReconnectPolicy
from lodgebot.infrastructure.config.settings import WhatsAppSettings
from .credential_store import CredentialStore
from .qr_renderer import QrRenderer

MessageCallback = Callable[[IWhatsAppTransport, str, str, Dict[str, Any]], Awaitable[None]]


class ConnectionManager:
    """
    Owns one outbound WhatsApp session.

    Dependencies:
    - transport_factory: builds a fresh transport from (credentials, options)
    - credential_store: persisted auth state (defaults to settings.session_dir)
    - qr_renderer: operator QR output (defaults to settings.qr_png_path)
    - scheduler: delayed reconnect timer (defaults to the asyncio loop)
    - event_bus: optional lifecycle notifications
    - session_invalid_predicate: decides when to wipe credentials on close
    """

    def __init__(self,
                 transport_factory: TransportFactory,
                 settings: Optional[WhatsAppSettings] = None,
                 credential_store: Optional[CredentialStore] = None,
                 qr_renderer: Optional[QrRenderer] = None,
                 scheduler: Optional[IScheduler] = None,
                 event_bus: Optional[EventBus] = None,
                 session_invalid_predicate: SessionInvalidPredicate = is_session_invalid,
                 logger: Optional[StructuredLogger] = None):
        settings = settings or WhatsAppSettings()

        self.transport_factory = transport_factory
        self.policy = ReconnectPolicy.from_settings(settings)
        self.transport_options = TransportOptions(
            browser=list(settings.browser),
            keep_alive_interval_ms=settings.keep_alive_interval_ms,
            connect_timeout_ms=settings.connect_timeout_ms,
            mark_online_on_connect=settings.mark_online_on_connect,
            sync_full_history=settings.sync_full_history,
        )
        self.credential_store = credential_store or CredentialStore(settings.session_dir)
        self.qr_renderer = qr_renderer or QrRenderer(settings.qr_png_path, settings.qr_terminal_enabled)
        self.scheduler = scheduler or AsyncioScheduler()
        self.event_bus = event_bus
        self.session_invalid_predicate = session_invalid_predicate
        self.logger = logger or get_logger(__name__)

        # Lifecycle state
        self.status = ManagerStatus.IDLE
        self.reconnect_attempts = 0
        self.is_reconnecting = False
        self.active_transport: Optional[IWhatsAppTransport] = None
        self.last_disconnect: Optional[DisconnectReason] = None

        self._on_message: Optional[MessageCallback] = None
        self._reconnect_handle: Optional[ScheduledHandle] = None
        self._persist_tasks: Set[asyncio.Task] = set()
        self._persist_lock = asyncio.Lock()
        self._notify_tasks: Set[asyncio.Task] = set()
        self._credential_generation = 0

        # Statistics
        self.sessions_opened = 0
        self.messages_forwarded = 0
        self.messages_skipped = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def start(self, on_message: Optional[MessageCallback] = None) -> None:
        """
        Open a session and return without waiting for it to be usable.

        No-op while a reconnect is pending. Calling it after the manager gave up
        (exhausted, failed or stopped) counts as an operator restart and clears
        the attempt counter.

        Raises:
            SessionStorageError: If the credential directory cannot be created
            ValueError: If no message callback was ever supplied
        """
        if self.is_reconnecting:
            self.logger.debug("whatsapp.start_skipped", {
                "reason": "reconnect_in_flight",
                "attempt": self.reconnect_attempts
            })
            return

        if on_message is not None:
            self._on_message = on_message
        if self._on_message is None:
            raise ValueError("start() requires an on_message callback")

        if self.status in (ManagerStatus.EXHAUSTED, ManagerStatus.STOPPED, ManagerStatus.FAILED):
            self.logger.info("whatsapp.manual_restart", {
                "previous_status": self.status.value,
                "previous_attempts": self.reconnect_attempts
            })
            self.reconnect_attempts = 0

        self.credential_store.ensure_directory()
        credentials = await self.credential_store.load()

        self.status = ManagerStatus.CONNECTING
        try:
            transport = self.transport_factory(credentials, self.transport_options)
        except Exception as e:
            self.logger.error("whatsapp.transport_factory_failed", {"error": str(e)}, exc_info=True)
            await self._handle_close(None, DisconnectReason(message=f"transport factory failed: {e}"))
            return

        # Replaces the previous transport; events from the old one are ignored from now on
        self.active_transport = transport
        transport.on(EVENT_CONNECTION_UPDATE, partial(self._on_connection_update, transport))
        transport.on(EVENT_CREDS_UPDATE, partial(self._on_creds_update, transport))
        transport.on(EVENT_MESSAGES_UPSERT, partial(self._on_messages_upsert, transport))

        self.logger.info("whatsapp.session_starting", {
            "session_dir": str(self.credential_store.directory),
            "has_credentials": "creds" in credentials,
            "attempt": self.reconnect_attempts
        })

        try:
            await transport.connect()
        except Exception as e:
            self.logger.error("whatsapp.connect_failed", {"error": str(e)}, exc_info=True)
            await self._handle_close(transport, DisconnectReason(message=str(e)))

    async def stop(self) -> None:
        """Cancel any pending reconnect, close the active transport and stay down."""
        previous = self.status
        self.status = ManagerStatus.STOPPED

        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        self.is_reconnecting = False

        transport, self.active_transport = self.active_transport, None
        if transport is not None:
            try:
                await transport.close()
            except Exception as e:
                self.logger.warning("whatsapp.transport_close_failed", {"error": str(e)})

        pending = self._persist_tasks | self._notify_tasks
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        self.logger.info("whatsapp.stopped", {"previous_status": previous.value})

    async def send_text(self, jid: str, text: str) -> Any:
        """
        Send a plain text message through the open session.

        Raises:
            SessionNotOpenError: If no session is currently open
        """
        if self.status != ManagerStatus.OPEN or self.active_transport is None:
            raise SessionNotOpenError(self.status.value)
        return await self.active_transport.send_message(jid, {"text": text})

    @property
    def attempts_remaining(self) -> int:
        return self.policy.remaining(self.reconnect_attempts)

    @property
    def is_exhausted(self) -> bool:
        return self.status == ManagerStatus.EXHAUSTED

    def health_check(self) -> Dict[str, Any]:
        return {
            "healthy": self.status in (ManagerStatus.OPEN, ManagerStatus.AWAITING_QR),
            "status": self.status.value,
            "reconnect_attempts": self.reconnect_attempts,
            "max_reconnect_attempts": self.policy.max_attempts,
            "attempts_remaining": self.attempts_remaining,
            "is_reconnecting": self.is_reconnecting,
            "last_disconnect": self.last_disconnect.to_dict() if self.last_disconnect else None,
            "session_dir": str(self.credential_store.directory),
            "has_credentials": self.credential_store.has_credentials(),
            "sessions_opened": self.sessions_opened,
            "messages_forwarded": self.messages_forwarded,
            "messages_skipped": self.messages_skipped,
        }

    # ------------------------------------------------------------------
    # Transport event handlers
    # ------------------------------------------------------------------

    def _is_active(self, transport: IWhatsAppTransport, event: str) -> bool:
        if transport is self.active_transport:
            return True
        self.logger.debug("whatsapp.stale_transport_event", {"event": event})
        return False

    async def _on_connection_update(self, transport: IWhatsAppTransport, update: Dict[str, Any]) -> None:
        if not self._is_active(transport, EVENT_CONNECTION_UPDATE):
            return

        try:
            if update.get("qr"):
                await self._handle_qr(update["qr"])

            connection = update.get("connection")
            if connection == "open":
                await self._handle_open()
            elif connection == "connecting":
                if self.status != ManagerStatus.AWAITING_QR:
                    self.status = ManagerStatus.CONNECTING
            elif connection == "close":
                reason = DisconnectReason.from_payload(update.get("lastDisconnect"))
                await self._handle_close(transport, reason)
        except Exception as e:
            self.logger.error("whatsapp.connection_update_failed", {
                "error": str(e),
                "connection": update.get("connection")
            }, exc_info=True)

    async def _on_creds_update(self, transport: IWhatsAppTransport, update: Dict[str, Any]) -> None:
        if not self._is_active(transport, EVENT_CREDS_UPDATE):
            return

        try:
            snapshot = dict(transport.credentials)
        except Exception as e:
            self.logger.error("whatsapp.credentials_read_failed", {"error": str(e)}, exc_info=True)
            return

        task = asyncio.create_task(self._persist_credentials(self._credential_generation, snapshot))
        self._persist_tasks.add(task)
        task.add_done_callback(self._persist_tasks.discard)

    async def _on_messages_upsert(self, transport: IWhatsAppTransport, upsert: Dict[str, Any]) -> None:
        if not self._is_active(transport, EVENT_MESSAGES_UPSERT):
            return

        messages = upsert.get("messages") if isinstance(upsert, dict) else None
        for raw in messages or []:
            message = InboundMessage.from_raw(raw)
            if not message.should_process:
                self.messages_skipped += 1
                self.logger.debug("whatsapp.message_skipped", {
                    "reason": message.skip_reason,
                    "message_type": message.message_type
                })
                continue

            try:
                await self._on_message(transport, message.sender, message.text, message.content)
                self.messages_forwarded += 1
            except Exception as e:
                self.logger.error("whatsapp.message_callback_failed", {
                    "sender": message.sender,
                    "message_type": message.message_type,
                    "error": str(e)
                }, exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    async def _handle_qr(self, payload: str) -> None:
        self.status = ManagerStatus.AWAITING_QR
        self.logger.info("whatsapp.qr_received", {"png_path": str(self.qr_renderer.png_path)})

        try:
            rendered = await self.qr_renderer.render_async(payload)
        except Exception as e:
            rendered = False
            self.logger.error("whatsapp.qr_render_failed", {"error": str(e)}, exc_info=True)

        self._publish("whatsapp.qr", {
            "qr_png_path": str(self.qr_renderer.png_path),
            "rendered": rendered
        })

    async def _handle_open(self) -> None:
        previous_attempts = self.reconnect_attempts
        self.reconnect_attempts = 0
        self.status = ManagerStatus.OPEN
        self.sessions_opened += 1

        self.logger.info("whatsapp.connection_open", {"previous_attempts": previous_attempts})
        self._publish("whatsapp.open", {"previous_attempts": previous_attempts})

    async def _handle_close(self, transport: Optional[IWhatsAppTransport], reason: DisconnectReason) -> None:
        self.last_disconnect = reason

        if self.status == ManagerStatus.STOPPED:
            self.logger.info("whatsapp.close_after_stop", reason.to_dict())
            return

        # A closed transport is spent: anything it emits from now on is stale
        if transport is not None and transport is self.active_transport:
            self.active_transport = None

        try:
            session_invalid = bool(self.session_invalid_predicate(reason))
        except Exception as e:
            session_invalid = False
            self.logger.error("whatsapp.disconnect_classification_failed", {"error": str(e)}, exc_info=True)

        self.logger.warning("whatsapp.connection_closed", {
            **reason.to_dict(),
            "session_invalid": session_invalid
        })

        if session_invalid:
            await self._wipe_session()

        self._publish("whatsapp.close", {
            "status_code": reason.status_code,
            "reason": reason.reason or reason.message,
            "session_invalid": session_invalid
        })
        self._schedule_reconnect()

    async def _wipe_session(self) -> None:
        # Saves snapshotted before this point belong to the dead session and are dropped
        self._credential_generation += 1

        async with self._persist_lock:
            try:
                await self.credential_store.clear()
            except Exception as e:
                self.logger.error("whatsapp.session_wipe_failed", {
                    "session_dir": str(self.credential_store.directory),
                    "error": str(e)
                }, exc_info=True)

    def _schedule_reconnect(self) -> None:
        if self.is_reconnecting:
            self.logger.debug("whatsapp.reconnect_already_pending", {"attempt": self.reconnect_attempts})
            return

        if not self.policy.can_retry(self.reconnect_attempts):
            self.status = ManagerStatus.EXHAUSTED
            self.logger.error("whatsapp.reconnect_exhausted", {
                "attempts": self.reconnect_attempts,
                "max_attempts": self.policy.max_attempts,
                "action": "manual restart required"
            })
            self._publish("whatsapp.reconnect_exhausted", {
                "attempts": self.reconnect_attempts,
                "max_attempts": self.policy.max_attempts
            })
            return

        self.is_reconnecting = True
        self.reconnect_attempts += 1
        self.status = ManagerStatus.RECONNECTING
        delay_ms = self.policy.delay_ms(self.reconnect_attempts)

        self._reconnect_handle = self.scheduler.call_later(delay_ms / 1000.0, self._reconnect)

        self.logger.info("whatsapp.reconnect_scheduled", {
            "attempt": self.reconnect_attempts,
            "max_attempts": self.policy.max_attempts,
            "delay_ms": delay_ms
        })
        self._publish("whatsapp.reconnect_scheduled", {
            "attempt": self.reconnect_attempts,
            "delay_ms": delay_ms
        })

    async def _reconnect(self) -> None:
        self._reconnect_handle = None
        self.is_reconnecting = False

        if self.status == ManagerStatus.STOPPED:
            return

        try:
            await self.start()
        except SessionStorageError as e:
            self.status = ManagerStatus.FAILED
            self.logger.critical("whatsapp.reconnect_storage_failed", {
                "path": e.path,
                "error": e.reason,
                "action": "manual restart required"
            })
        except Exception as e:
            self.status = ManagerStatus.FAILED
            self.logger.critical("whatsapp.reconnect_failed", {
                "error": str(e),
                "error_type": type(e).__name__,
                "action": "manual restart required"
            }, exc_info=True)

    async def _persist_credentials(self, generation: int, credentials: Dict[str, Any]) -> None:
        # Serialised so back-to-back rotations never interleave writes
        async with self._persist_lock:
            if generation != self._credential_generation:
                self.logger.debug("whatsapp.credentials_save_dropped", {"reason": "session_wiped"})
                return
            try:
                await self.credential_store.save(credentials)
            except Exception as e:
                self.logger.error("whatsapp.credentials_save_failed", {
                    "session_dir": str(self.credential_store.directory),
                    "error": str(e)
                }, exc_info=True)

    def _publish(self, topic: str, data: Dict[str, Any]) -> None:
        """Hand a notification to the event bus without waiting for subscribers."""
        if self.event_bus is None:
            return
        task = asyncio.create_task(self.event_bus.publish(topic, data))
        self._notify_tasks.add(task)
        task.add_done_callback(partial(self._on_publish_done, topic))

    def _on_publish_done(self, topic: str, task: asyncio.Task) -> None:
        self._notify_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.warning("whatsapp.event_publish_failed", {"topic": topic, "error": str(exc)})
