"""
Transient user-facing notifications (toasts) for a checkout session.
Each notification is also written to the service log.
"""
import logging
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    kind: str
    message: str


class Notifier:
    def __init__(self, session_label: str = "-"):
        self.session_label = session_label
        self._pending: List[Notification] = []

    def notify(self, kind: str, message: str) -> None:
        logger.log(_LOG_LEVELS.get(kind, logging.INFO), "[%s] %s: %s", self.session_label, kind, message)
        self._pending.append(Notification(kind, message))

    def success(self, message: str) -> None:
        self.notify("success", message)

    def info(self, message: str) -> None:
        self.notify("info", message)

    def error(self, message: str) -> None:
        self.notify("error", message)

    @property
    def pending(self) -> List[Notification]:
        return list(self._pending)

    def drain(self) -> List[Notification]:
        """Hand the queued notifications to the client exactly once"""
        drained, self._pending = self._pending, []
        return drained
