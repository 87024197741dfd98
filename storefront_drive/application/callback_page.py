"""The OAuth redirect target, loaded inside the consent popup.

The page reads ``code``/``error`` from its query string, exchanges the code,
reports the result to the window that opened it and then closes itself::

    awaiting_params --error--------------------------> error
    awaiting_params --neither------------------------> error   (no message)
    awaiting_params --code--> exchanging --ok--------> success
                                         --failure---> error

Success closes after a short delay, every error path after a longer one.
While the popup is open, the result is re-posted until the opener
acknowledges its ``attempt_id``.
"""

from __future__ import annotations

import html
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

from storefront_drive.application.notifications import LogNotifier, Notifier
from storefront_drive.application.window import MESSAGE_EVENT, BrowserWindow, MessageEvent, TimerHandle
from storefront_drive.domain.auth_messages import (
    AUTH_ACK,
    AuthAckMessage,
    AuthErrorMessage,
    AuthSuccessMessage,
    new_attempt_id,
    parse_auth_message,
    to_wire,
)
from storefront_drive.domain.entities import TokenPair
from storefront_drive.domain.errors import ProtocolViolation
from storefront_drive.infrastructure.log_utils import log_message

SUCCESS_CLOSE_DELAY = 0.5
ERROR_CLOSE_DELAY = 2.0
REDELIVERY_INTERVAL = 0.2

STATUS_PENDING = "Completing authorization…"
STATUS_SUCCESS = "Authorization complete. This window will close automatically."
STATUS_NO_CODE = "No authorization code received."

Exchange = Callable[[str], Mapping[str, Any]]
OutboundMessage = Union[AuthSuccessMessage, AuthErrorMessage]


class CallbackState(str, Enum):
    AWAITING_PARAMS = "awaiting_params"
    EXCHANGING = "exchanging"
    SUCCESS = "success_terminal"
    ERROR = "error_terminal"


@dataclass(frozen=True)
class CallbackOutcome:
    state: CallbackState
    message: Optional[OutboundMessage]
    close_delay: float
    status_text: str
    error: Optional[str] = None
    violation: Optional[ProtocolViolation] = None

    @property
    def succeeded(self) -> bool:
        return self.state is CallbackState.SUCCESS


def _describe(exc: BaseException) -> str:
    return str(exc).strip() or exc.__class__.__name__


def resolve_callback(
    query: Mapping[str, Any],
    exchange: Exchange,
    *,
    attempt_id: Optional[str] = None,
    success_close_delay: float = SUCCESS_CLOSE_DELAY,
    error_close_delay: float = ERROR_CLOSE_DELAY,
    on_exchanging: Optional[Callable[[], None]] = None,
) -> CallbackOutcome:
    """Run the callback state machine for one set of query parameters.

    Never raises: every failure of ``exchange`` becomes an error outcome.
    """
    attempt_id = attempt_id or new_attempt_id()
    code = query.get("code")
    error = query.get("error")

    if error:
        log_message(f"Google Drive authorization returned an error: {error}", "WARN")
        return CallbackOutcome(
            state=CallbackState.ERROR,
            message=AuthErrorMessage(error=str(error), attempt_id=attempt_id),
            close_delay=error_close_delay,
            status_text=f"Authorization failed: {error}",
            error=str(error),
        )

    if not code:
        violation = ProtocolViolation("Callback loaded without 'code' or 'error' parameter")
        log_message(f"Protocol violation: {violation}", "WARN")
        return CallbackOutcome(
            state=CallbackState.ERROR,
            message=None,
            close_delay=error_close_delay,
            status_text=STATUS_NO_CODE,
            error=STATUS_NO_CODE,
            violation=violation,
        )

    if on_exchanging is not None:
        on_exchanging()

    try:
        tokens = dict(exchange(str(code)))
        TokenPair.model_validate(tokens)
    except Exception as exc:
        reason = _describe(exc)
        log_message(f"Authorization code exchange failed: {reason}", "ERROR")
        return CallbackOutcome(
            state=CallbackState.ERROR,
            message=AuthErrorMessage(error=reason, attempt_id=attempt_id),
            close_delay=error_close_delay,
            status_text=f"Authorization failed: {reason}",
            error=reason,
        )

    return CallbackOutcome(
        state=CallbackState.SUCCESS,
        message=AuthSuccessMessage.from_tokens(tokens, attempt_id=attempt_id),
        close_delay=success_close_delay,
        status_text=STATUS_SUCCESS,
    )


class GoogleDriveCallbackPage:
    """Drives :func:`resolve_callback` inside a popup :class:`BrowserWindow`."""

    def __init__(
        self,
        window: BrowserWindow,
        exchange: Exchange,
        *,
        notifier: Optional[Notifier] = None,
        success_close_delay: float = SUCCESS_CLOSE_DELAY,
        error_close_delay: float = ERROR_CLOSE_DELAY,
        redelivery_interval: Optional[float] = REDELIVERY_INTERVAL,
        attempt_id: Optional[str] = None,
    ) -> None:
        self._window = window
        self._exchange = exchange
        self._notifier = notifier or LogNotifier()
        self._success_close_delay = success_close_delay
        self._error_close_delay = error_close_delay
        self._redelivery_interval = redelivery_interval
        self.attempt_id = attempt_id or new_attempt_id()

        self.state = CallbackState.AWAITING_PARAMS
        self.status_text = STATUS_PENDING
        self.outcome: Optional[CallbackOutcome] = None
        self.acknowledged = False
        self.deliveries = 0
        self._payload: Optional[dict] = None
        self._redelivery: Optional[TimerHandle] = None

    def load(self, query: Mapping[str, Any]) -> CallbackOutcome:
        if self.outcome is not None:
            raise RuntimeError("Callback page already loaded")

        def _mark_exchanging() -> None:
            self.state = CallbackState.EXCHANGING

        outcome = resolve_callback(
            query,
            self._exchange,
            attempt_id=self.attempt_id,
            success_close_delay=self._success_close_delay,
            error_close_delay=self._error_close_delay,
            on_exchanging=_mark_exchanging,
        )
        self.outcome = outcome
        self.state = outcome.state
        self.status_text = outcome.status_text

        if outcome.succeeded:
            self._notifier.success("Authorization successful!")
        elif outcome.violation is not None:
            self._notifier.error("No authorization code was received")
        else:
            self._notifier.error("Google Drive authorization failed")

        if outcome.message is not None and self._window.opener is not None:
            self._payload = to_wire(outcome.message)
            self._window.add_event_listener(MESSAGE_EVENT, self._on_message)
            self._deliver()
        elif outcome.message is not None:
            log_message("Callback page has no opener; result shown in page only.", "INFO")

        self._window.set_timeout(outcome.close_delay, self._window.close)
        return outcome

    def _deliver(self) -> None:
        opener = self._window.opener
        if self._payload is None or opener is None or self.acknowledged or self._window.closed:
            return
        delivered = opener.post_message(self._payload, source=self._window)
        self.deliveries += 1
        if not delivered:
            log_message("Opener window is gone; authorization result was not delivered.", "WARN")
            return
        if self._redelivery_interval and not self.acknowledged:
            self._redelivery = self._window.set_timeout(self._redelivery_interval, self._deliver)

    def _on_message(self, event: MessageEvent) -> None:
        if event.source is not None and event.source is not self._window.opener:
            return
        message = parse_auth_message(event.data)
        if isinstance(message, AuthAckMessage) and message.attempt_id == self.attempt_id:
            self.acknowledged = True
            if self._redelivery is not None:
                self._redelivery.cancel()
                self._redelivery = None
            log_message(f"Opener acknowledged attempt {self.attempt_id}.", "DEBUG")


_DOCUMENT_TEMPLATE = """<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <title>Google Drive Auth</title>
  </head>
  <body>
    <div style="text-align:center;padding:40px;font-family:system-ui,-apple-system,Segoe UI,Roboto">
      <h2>{heading}</h2>
      <p>{status}</p>
    </div>
    <script>
      (function () {{
        var payload = {payload};
        var closeDelay = {close_ms};
        if (payload && window.opener) {{
          var acked = false;
          window.addEventListener('message', function (event) {{
            var data = event.data;
            if (data && data.type === '{ack_type}' && data.attempt_id === payload.attempt_id) {{
              acked = true;
            }}
          }});
          var send = function () {{
            if (acked) {{ return; }}
            try {{ window.opener.postMessage(payload, '*'); }} catch (_) {{}}
          }};
          send();
          var timer = setInterval(send, {interval_ms});
          setTimeout(function () {{ clearInterval(timer); }}, closeDelay);
        }}
        setTimeout(function () {{ window.close(); }}, closeDelay);
      }})();
    </script>
  </body>
</html>
"""


def _script_json(value: Any) -> str:
    return (
        json.dumps(value)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
        .replace("\u2028", "\\u2028")
        .replace("\u2029", "\\u2029")
    )


def render_callback_document(outcome: CallbackOutcome, *, redelivery_interval: float = REDELIVERY_INTERVAL) -> str:
    """HTML for the server-hosted callback: posts the outcome to the opener, then closes."""
    payload = to_wire(outcome.message) if outcome.message is not None else None
    heading = "&#10003; Authorization complete" if outcome.succeeded else "Authorization failed"
    return _DOCUMENT_TEMPLATE.format(
        heading=heading,
        status=html.escape(outcome.status_text),
        payload=_script_json(payload),
        close_ms=int(outcome.close_delay * 1000),
        interval_ms=max(1, int(redelivery_interval * 1000)),
        ack_type=AUTH_ACK,
    )


__all__ = [
    "CallbackOutcome",
    "CallbackState",
    "ERROR_CLOSE_DELAY",
    "GoogleDriveCallbackPage",
    "REDELIVERY_INTERVAL",
    "SUCCESS_CLOSE_DELAY",
    "render_callback_document",
    "resolve_callback",
]
