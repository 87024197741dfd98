"""User-facing notifications (the storefront's toasts)."""

from __future__ import annotations

from typing import List, Protocol, Tuple

from storefront_drive.infrastructure.log_utils import log_message


class Notifier(Protocol):
    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class LogNotifier:
    """Default notifier for headless hosts: notifications go to the history log."""

    def __init__(self, tag: str = "UI") -> None:
        self._tag = tag

    def success(self, message: str) -> None:
        log_message(message, "INFO", tag=self._tag)

    def error(self, message: str) -> None:
        log_message(message, "WARN", tag=self._tag)


class RecordingNotifier:
    """Keeps notifications in order, e.g. to render them after a CLI run."""

    def __init__(self) -> None:
        self.notifications: List[Tuple[str, str]] = []

    def success(self, message: str) -> None:
        self.notifications.append(("success", message))

    def error(self, message: str) -> None:
        self.notifications.append(("error", message))

    @property
    def errors(self) -> List[str]:
        return [message for kind, message in self.notifications if kind == "error"]

    @property
    def successes(self) -> List[str]:
        return [message for kind, message in self.notifications if kind == "success"]


__all__ = ["LogNotifier", "Notifier", "RecordingNotifier"]
