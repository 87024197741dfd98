from storefront_drive.application.window import (
    MESSAGE_EVENT,
    UNLOAD_EVENT,
    BrowserWindow,
    ManualScheduler,
)
from storefront_drive.infrastructure.local_storage import InMemoryLocalStorage


def test_post_message_delivers_a_clone():
    window = BrowserWindow(scheduler=ManualScheduler())
    received = []
    window.add_event_listener(MESSAGE_EVENT, lambda event: received.append(event.data))
    payload = {"tokens": {"refresh_token": "r1"}}

    assert window.post_message(payload) is True
    payload["tokens"]["refresh_token"] = "mutated"

    assert received == [{"tokens": {"refresh_token": "r1"}}]


def test_closed_window_drops_messages_and_timers():
    scheduler = ManualScheduler()
    window = BrowserWindow(scheduler=scheduler)
    fired = []
    window.set_timeout(1.0, lambda: fired.append("timer"))

    window.close()

    assert window.post_message({"type": "x"}) is False
    scheduler.run_all()
    assert fired == []


def test_close_dispatches_unload_once():
    window = BrowserWindow(scheduler=ManualScheduler())
    unloads = []
    window.add_event_listener(UNLOAD_EVENT, unloads.append)

    window.close()
    window.close()

    assert len(unloads) == 1
    assert window.closed


def test_failing_handler_does_not_stop_others():
    window = BrowserWindow(scheduler=ManualScheduler())
    received = []

    def _boom(event):
        raise RuntimeError("handler failed")

    window.add_event_listener(MESSAGE_EVENT, _boom)
    window.add_event_listener(MESSAGE_EVENT, lambda event: received.append(event.data))

    window.post_message("hello")

    assert received == ["hello"]


def test_message_event_carries_source_origin():
    opener = BrowserWindow(origin="https://shop.example.com", scheduler=ManualScheduler())
    popup = opener.open_popup("auth", origin="https://api.example.com")
    events = []
    opener.add_event_listener(MESSAGE_EVENT, events.append)

    opener.post_message({"type": "x"}, source=popup)

    assert events[0].source is popup
    assert events[0].origin == "https://api.example.com"


def test_cross_origin_popup_gets_its_own_storage():
    opener = BrowserWindow(origin="https://shop.example.com", local_storage=InMemoryLocalStorage({"k": "v"}))
    popup = opener.open_popup("auth", origin="https://accounts.example.com")

    assert popup.opener is opener
    assert popup.local_storage.get_item("k") is None


def test_manual_scheduler_runs_callbacks_in_deadline_order():
    scheduler = ManualScheduler()
    order = []
    scheduler.call_later(2.0, lambda: order.append("late"))
    scheduler.call_later(0.5, lambda: order.append("early"))
    cancelled = scheduler.call_later(1.0, lambda: order.append("cancelled"))
    cancelled.cancel()

    assert scheduler.pending == 2
    scheduler.advance(1.0)
    assert order == ["early"]
    scheduler.run_all()
    assert order == ["early", "late"]
    assert scheduler.now == 2.0
