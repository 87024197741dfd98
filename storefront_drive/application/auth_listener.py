"""Opener-side receiver of authorization results posted by the callback popup."""

from __future__ import annotations

from collections import OrderedDict
from typing import Optional

from storefront_drive.application.notifications import LogNotifier, Notifier
from storefront_drive.application.token_store import TokenStore
from storefront_drive.application.window import MESSAGE_EVENT, BrowserWindow, MessageEvent
from storefront_drive.domain.auth_messages import (
    AuthAckMessage,
    AuthErrorMessage,
    AuthSuccessMessage,
    parse_auth_message,
    to_wire,
)
from storefront_drive.domain.entities import AUTH_UPDATED_EVENT
from storefront_drive.infrastructure.log_utils import log_message

MSG_AUTHORIZED = "Google Drive authorized"
MSG_NO_REFRESH_TOKEN = "No refresh token received from Google"


class GoogleDriveAuthListener:
    """Persists refresh tokens delivered by ``GOOGLE_DRIVE_AUTH_SUCCESS`` messages.

    Messages of any other shape are ignored. Every success or error carrying
    an ``attempt_id`` is acknowledged back to its sender, and repeated
    deliveries of the same attempt are handled once.
    """

    def __init__(
        self,
        window: BrowserWindow,
        token_store: Optional[TokenStore] = None,
        *,
        notifier: Optional[Notifier] = None,
        max_tracked_attempts: int = 64,
    ) -> None:
        self._window = window
        self._store = token_store or TokenStore(window.local_storage)
        self._notifier = notifier or LogNotifier()
        self._max_tracked = max(1, max_tracked_attempts)
        self._seen: "OrderedDict[str, None]" = OrderedDict()
        self._started = False
        self.stored_count = 0

    @property
    def active(self) -> bool:
        return self._started

    def start(self) -> "GoogleDriveAuthListener":
        if not self._started:
            self._window.add_event_listener(MESSAGE_EVENT, self.handle_message)
            self._started = True
        return self

    def stop(self) -> None:
        if self._started:
            self._window.remove_event_listener(MESSAGE_EVENT, self.handle_message)
            self._started = False

    def __enter__(self) -> "GoogleDriveAuthListener":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def handle_message(self, event: MessageEvent) -> bool:
        """Process one incoming message; returns ``True`` if it changed the stored token."""
        message = parse_auth_message(event.data)
        if message is None or isinstance(message, AuthAckMessage):
            return False

        if message.attempt_id:
            self._acknowledge(event, message.attempt_id)
            if self._already_seen(message.attempt_id):
                log_message(f"Ignoring redelivery of attempt {message.attempt_id}.", "DEBUG")
                return False

        if isinstance(message, AuthErrorMessage):
            log_message(f"Google Drive authorization failed in popup: {message.error}", "WARN")
            return False

        return self._store_tokens(message)

    def _store_tokens(self, message: AuthSuccessMessage) -> bool:
        refresh_token = message.refresh_token
        if not refresh_token:
            log_message("Authorization succeeded but no refresh token was issued.", "WARN")
            self._notifier.error(MSG_NO_REFRESH_TOKEN)
            return False

        previous = self._store.get()
        if previous and previous != refresh_token:
            log_message("Replacing previously stored Google Drive refresh token.", "INFO")
        self._store.set(refresh_token)
        self.stored_count += 1
        log_message("Stored Google Drive refresh token.", "INFO")
        self._window.dispatch_event(AUTH_UPDATED_EVENT)
        self._notifier.success(MSG_AUTHORIZED)
        return True

    def _acknowledge(self, event: MessageEvent, attempt_id: str) -> None:
        source = event.source
        if source is None or source.closed:
            return
        source.post_message(to_wire(AuthAckMessage(attempt_id=attempt_id)), source=self._window)

    def _already_seen(self, attempt_id: str) -> bool:
        if attempt_id in self._seen:
            return True
        self._seen[attempt_id] = None
        while len(self._seen) > self._max_tracked:
            self._seen.popitem(last=False)
        return False


__all__ = ["GoogleDriveAuthListener", "MSG_AUTHORIZED", "MSG_NO_REFRESH_TOKEN"]
