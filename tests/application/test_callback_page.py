import pytest

from storefront_drive.application.callback_page import (
    ERROR_CLOSE_DELAY,
    SUCCESS_CLOSE_DELAY,
    CallbackState,
    GoogleDriveCallbackPage,
    render_callback_document,
    resolve_callback,
)
from storefront_drive.application.notifications import RecordingNotifier
from storefront_drive.application.window import MESSAGE_EVENT, BrowserWindow, ManualScheduler
from storefront_drive.domain.auth_messages import AUTH_ACK, AUTH_ERROR, AUTH_SUCCESS
from storefront_drive.domain.errors import TokenExchangeFailed
from tests.fakes import StubExchange

TOKENS = {"access_token": "a1", "refresh_token": "r1", "expires_in": 3600}


class Inbox:
    """Records messages arriving at a window, optionally acknowledging them."""

    def __init__(self, window: BrowserWindow, *, ack: bool = False) -> None:
        self.window = window
        self.ack = ack
        self.messages = []
        window.add_event_listener(MESSAGE_EVENT, self._on_message)

    def _on_message(self, event) -> None:
        self.messages.append(event.data)
        if self.ack and event.data.get("attempt_id"):
            event.source.post_message({"type": AUTH_ACK, "attempt_id": event.data["attempt_id"]}, source=self.window)


@pytest.fixture
def windows():
    scheduler = ManualScheduler()
    opener = BrowserWindow(name="storefront", scheduler=scheduler)
    popup = opener.open_popup("auth")
    return scheduler, opener, popup


def test_success_posts_full_token_pair_and_closes_quickly(windows):
    scheduler, opener, popup = windows
    inbox = Inbox(opener, ack=True)
    notifier = RecordingNotifier()
    page = GoogleDriveCallbackPage(popup, StubExchange(TOKENS), notifier=notifier)

    outcome = page.load({"code": "VALIDCODE"})

    assert outcome.state is CallbackState.SUCCESS
    assert page.state is CallbackState.SUCCESS
    assert len(inbox.messages) == 1
    message = inbox.messages[0]
    assert message["type"] == AUTH_SUCCESS
    assert message["tokens"] == TOKENS
    assert notifier.successes == ["Authorization successful!"]

    scheduler.advance(SUCCESS_CLOSE_DELAY - 0.01)
    assert not popup.closed
    scheduler.advance(0.02)
    assert popup.closed


def test_provider_error_is_relayed_without_exchange(windows):
    scheduler, opener, popup = windows
    inbox = Inbox(opener, ack=True)
    exchange = StubExchange(TOKENS)
    page = GoogleDriveCallbackPage(popup, exchange)

    outcome = page.load({"error": "access_denied"})

    assert exchange.codes == []
    assert outcome.state is CallbackState.ERROR
    assert inbox.messages[0]["type"] == AUTH_ERROR
    assert inbox.messages[0]["error"] == "access_denied"

    scheduler.advance(ERROR_CLOSE_DELAY - 0.01)
    assert not popup.closed
    scheduler.advance(0.02)
    assert popup.closed


def test_error_wins_over_code(windows):
    _, opener, popup = windows
    inbox = Inbox(opener, ack=True)
    exchange = StubExchange(TOKENS)

    GoogleDriveCallbackPage(popup, exchange).load({"code": "VALIDCODE", "error": "access_denied"})

    assert exchange.codes == []
    assert inbox.messages[0]["type"] == AUTH_ERROR


def test_exchange_failure_posts_error_message(windows):
    scheduler, opener, popup = windows
    inbox = Inbox(opener, ack=True)
    failure = TokenExchangeFailed("Failed to exchange code for tokens: Malformed auth code.")
    notifier = RecordingNotifier()
    page = GoogleDriveCallbackPage(popup, StubExchange(error=failure), notifier=notifier)

    outcome = page.load({"code": "BAD"})

    assert outcome.state is CallbackState.ERROR
    assert outcome.close_delay == ERROR_CLOSE_DELAY
    assert inbox.messages == [
        {
            "type": AUTH_ERROR,
            "error": "Failed to exchange code for tokens: Malformed auth code.",
            "attempt_id": page.attempt_id,
        }
    ]
    assert notifier.errors == ["Google Drive authorization failed"]


def test_unexpected_exchange_exception_still_becomes_error_message(windows):
    _, opener, popup = windows
    inbox = Inbox(opener, ack=True)

    GoogleDriveCallbackPage(popup, StubExchange(error=ConnectionError())).load({"code": "VALIDCODE"})

    assert inbox.messages[0]["error"] == "ConnectionError"


def test_exchange_result_without_access_token_is_an_error(windows):
    _, opener, popup = windows
    inbox = Inbox(opener, ack=True)

    outcome = GoogleDriveCallbackPage(popup, StubExchange({"error": "nope"})).load({"code": "VALIDCODE"})

    assert outcome.state is CallbackState.ERROR
    assert inbox.messages[0]["type"] == AUTH_ERROR


@pytest.mark.parametrize(
    "tokens",
    [
        {"access_token": "a1", "refresh_token": "r1", "expires_in": "3600"},
        {"access_token": "a1", "refresh_token": "r1", "expires_in": 3599.5, "refresh_token_expires_in": None},
    ],
)
def test_provider_fields_are_relayed_unchanged(windows, tokens):
    _, opener, popup = windows
    inbox = Inbox(opener, ack=True)

    outcome = GoogleDriveCallbackPage(popup, StubExchange(tokens)).load({"code": "VALIDCODE"})

    assert outcome.state is CallbackState.SUCCESS
    assert inbox.messages[0]["type"] == AUTH_SUCCESS
    assert inbox.messages[0]["tokens"] == tokens
    assert type(inbox.messages[0]["tokens"]["expires_in"]) is type(tokens["expires_in"])


def test_missing_parameters_is_a_protocol_violation(windows):
    scheduler, opener, popup = windows
    inbox = Inbox(opener, ack=True)
    notifier = RecordingNotifier()
    exchange = StubExchange(TOKENS)

    outcome = GoogleDriveCallbackPage(popup, exchange, notifier=notifier).load({})

    assert outcome.violation is not None
    assert outcome.message is None
    assert inbox.messages == []
    assert exchange.codes == []
    assert notifier.errors == ["No authorization code was received"]
    scheduler.advance(ERROR_CLOSE_DELAY)
    assert popup.closed


def test_without_opener_nothing_is_posted_and_page_still_closes():
    scheduler = ManualScheduler()
    popup = BrowserWindow(name="navigated-tab", scheduler=scheduler)
    page = GoogleDriveCallbackPage(popup, StubExchange(TOKENS))

    outcome = page.load({"code": "VALIDCODE"})

    assert outcome.succeeded
    assert page.deliveries == 0
    scheduler.advance(SUCCESS_CLOSE_DELAY)
    assert popup.closed


def test_closed_opener_drops_message():
    scheduler = ManualScheduler()
    opener = BrowserWindow(name="storefront", scheduler=scheduler)
    popup = opener.open_popup("auth")
    inbox = Inbox(opener)
    opener.close()

    page = GoogleDriveCallbackPage(popup, StubExchange(TOKENS))
    page.load({"code": "VALIDCODE"})
    scheduler.run_all()

    assert inbox.messages == []
    assert page.deliveries == 1
    assert popup.closed


def test_unacknowledged_message_is_redelivered_until_close(windows):
    scheduler, opener, popup = windows
    inbox = Inbox(opener, ack=False)
    page = GoogleDriveCallbackPage(popup, StubExchange(TOKENS), redelivery_interval=0.2)

    page.load({"code": "VALIDCODE"})
    scheduler.run_all()

    assert popup.closed
    # t=0.0, 0.2 and 0.4 before the close at 0.5
    assert len(inbox.messages) == 3
    assert all(message == inbox.messages[0] for message in inbox.messages)
    assert not page.acknowledged


def test_acknowledgement_stops_redelivery(windows):
    scheduler, opener, popup = windows
    inbox = Inbox(opener, ack=True)
    page = GoogleDriveCallbackPage(popup, StubExchange(TOKENS), redelivery_interval=0.2)

    page.load({"code": "VALIDCODE"})
    scheduler.run_all()

    assert page.acknowledged
    assert len(inbox.messages) == 1


def test_ack_for_another_attempt_is_ignored(windows):
    scheduler, opener, popup = windows
    Inbox(opener, ack=False)
    page = GoogleDriveCallbackPage(popup, StubExchange(TOKENS), attempt_id="mine")

    page.load({"code": "VALIDCODE"})
    popup.post_message({"type": AUTH_ACK, "attempt_id": "someone-else"}, source=opener)

    assert not page.acknowledged


def test_page_cannot_be_loaded_twice(windows):
    _, _, popup = windows
    page = GoogleDriveCallbackPage(popup, StubExchange(TOKENS))
    page.load({"error": "access_denied"})

    with pytest.raises(RuntimeError):
        page.load({"code": "VALIDCODE"})


def test_resolve_callback_reports_exchanging_state():
    seen = []

    outcome = resolve_callback(
        {"code": "VALIDCODE"},
        StubExchange(TOKENS),
        on_exchanging=lambda: seen.append("exchanging"),
    )

    assert seen == ["exchanging"]
    assert outcome.succeeded


def test_rendered_document_embeds_message_safely():
    outcome = resolve_callback({"error": "</script><script>alert(1)</script>"}, StubExchange())

    document = render_callback_document(outcome)

    assert "</script><script>alert(1)" not in document
    assert AUTH_ERROR in document
    assert "setTimeout(function () { window.close(); }, closeDelay);" in document
    assert "var closeDelay = 2000;" in document


def test_rendered_success_document_closes_after_short_delay():
    outcome = resolve_callback({"code": "VALIDCODE"}, StubExchange(TOKENS))

    document = render_callback_document(outcome, redelivery_interval=0.2)

    assert "var closeDelay = 500;" in document
    assert "setInterval(send, 200)" in document
    assert '"refresh_token": "r1"' in document
